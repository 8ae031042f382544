# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from unittest.mock import MagicMock, patch

import boto3
import pytest
from moto import mock_aws

from aliasflow.core.definitions.aws.common import (
    exponential_retry,
    get_aws_account_id,
    get_aws_account_id_from_arn,
    get_code_for_exception,
    is_not_found,
    sanitize_statement_id,
)


class TestAWSCommon:
    def test_get_code_for_exception(self, make_client_error):
        assert get_code_for_exception(make_client_error("ResourceNotFoundException")) == "ResourceNotFoundException"
        assert get_code_for_exception(ValueError("foo")) == "ValueError"

    def test_is_not_found(self, make_client_error):
        assert is_not_found(make_client_error("ResourceNotFoundException"))
        assert is_not_found(make_client_error("NotFoundException"))
        assert not is_not_found(make_client_error("AccessDeniedException"))
        assert not is_not_found(KeyError("NotFoundException"))

    def test_get_aws_account_id_from_arn(self):
        assert get_aws_account_id_from_arn("arn:aws:iam::123456789012:user/deployer") == "123456789012"
        assert get_aws_account_id_from_arn("arn:aws:sts::111122223333:assumed-role/role/session") == "111122223333"

    def test_sanitize_statement_id(self):
        assert sanitize_statement_id("apigateway-abc-dev-GET-res1") == "apigateway-abc-dev-GET-res1"
        assert sanitize_statement_id("apigateway-ws-abc-dev-$connect") == "apigateway-ws-abc-dev--connect"
        assert sanitize_statement_id("a b/c:d.e") == "a-b-c-d-e"
        # deterministic
        assert sanitize_statement_id("x$y") == sanitize_statement_id("x$y")

    def test_exponential_retry_raises_non_retryables_immediately(self, make_client_error):
        func = MagicMock(side_effect=make_client_error("AccessDeniedException"))
        with patch("aliasflow.core.definitions.aws.common.time.sleep") as sleep:
            with pytest.raises(Exception) as error:
                exponential_retry(func, ["ServiceException"], FunctionName="foo")
        assert get_code_for_exception(error.value) == "AccessDeniedException"
        assert func.call_count == 1
        sleep.assert_not_called()

    def test_exponential_retry_retries_service_errors(self, make_client_error):
        func = MagicMock(side_effect=[make_client_error("ServiceException"), make_client_error("ThrottlingException"), {"ok": True}])
        with patch("aliasflow.core.definitions.aws.common.time.sleep") as sleep:
            assert exponential_retry(func, ["ServiceException"], FunctionName="foo") == {"ok": True}
        assert func.call_count == 3
        assert sleep.call_count == 2
        func.assert_called_with(FunctionName="foo")

    def test_exponential_retry_gives_up_after_max_sleep(self, make_client_error):
        func = MagicMock(side_effect=make_client_error("ThrottlingException"))
        with patch("aliasflow.core.definitions.aws.common.time.sleep"):
            with pytest.raises(Exception):
                exponential_retry(func, [], _max_sleep_time_in_secs=4)
        # sleeps 1, 2 then gives up once the next interval reaches the max
        assert func.call_count == 2

    @mock_aws
    def test_get_aws_account_id(self):
        session = boto3.Session(region_name="us-east-1")
        assert get_aws_account_id(session, "us-east-1") == "123456789012"
