# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import copy
import json
from typing import Any, Dict, List, Optional, Tuple

import pytest
from botocore.exceptions import ClientError, WaiterError

from aliasflow.core.config import AliasConfig
from aliasflow.core.context import RunContext

REGION = "us-east-1"
ACCOUNT_ID = "123456789012"
REST_API_ID = "restapi123"
WEBSOCKET_API_ID = "wsapi456"


def client_error(code: str, operation_name: str = "Operation", message: str = "error") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation_name)


class _RecordingClient:
    """In-memory control plane stand-in, records every call as (operation, kwargs)."""

    MUTATING_OPERATIONS = frozenset()

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        # operation -> exception raised on the next calls
        self.failures: Dict[str, Exception] = {}

    def _record(self, operation: str, **kwargs) -> None:
        self.calls.append((operation, kwargs))
        if operation in self.failures:
            raise self.failures[operation]

    def calls_of(self, operation: str) -> List[Dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == operation]

    def mutating_calls(self) -> List[Tuple[str, Dict[str, Any]]]:
        return [(name, kwargs) for name, kwargs in self.calls if name in self.MUTATING_OPERATIONS]

    def reset_calls(self) -> None:
        self.calls = []


class FakeLambda(_RecordingClient):
    MUTATING_OPERATIONS = frozenset(
        {"update_function_configuration", "publish_version", "create_alias", "update_alias", "add_permission", "remove_permission"}
    )

    def __init__(self) -> None:
        super().__init__()
        self.functions: Dict[str, Dict[str, Any]] = {}
        # LastUpdateStatus values reported by the next polls of the unqualified configuration
        self.poll_statuses: List[str] = []
        # raised (one per poll) before any status is reported
        self.poll_errors: List[Exception] = []
        self.versions_page_size = 50

    # test setup helpers (not recorded)
    def add_function(self, name: str, environment: Optional[Dict[str, str]] = None, **attributes) -> Dict[str, Any]:
        latest = {
            "FunctionName": name,
            "FunctionArn": f"arn:aws:lambda:{REGION}:{ACCOUNT_ID}:function:{name}",
            "CodeSha256": "code-sha-1",
            "Handler": "handler.main",
            "Runtime": "python3.12",
            "MemorySize": 128,
            "Timeout": 6,
            "Role": f"arn:aws:iam::{ACCOUNT_ID}:role/exec",
            "Environment": {"Variables": dict(environment or {})},
            "Layers": [],
            "Version": "$LATEST",
            "LastUpdateStatus": "Successful",
        }
        latest.update(attributes)
        self.functions[name] = {"latest": latest, "versions": {}, "aliases": {}, "policies": {}, "next_version": 1}
        return latest

    def seed_version(self, name: str) -> str:
        return self._publish(name, "")["Version"]

    def seed_alias(self, name: str, alias_name: str, version: str) -> Dict[str, Any]:
        return self._put_alias(name, alias_name, version, "")

    def set_latest(self, name: str, **attributes) -> None:
        self.functions[name]["latest"].update(attributes)

    def set_latest_environment(self, name: str, environment: Dict[str, str]) -> None:
        self.functions[name]["latest"]["Environment"] = {"Variables": dict(environment)}

    def statements(self, target: str) -> Dict[str, Dict[str, Any]]:
        return self.functions[target.split(":")[0]]["policies"].get(target, {})

    # internals
    def _function(self, name: str) -> Dict[str, Any]:
        base_name = name.split(":")[0]
        if base_name not in self.functions:
            raise client_error("ResourceNotFoundException", message=f"Function not found: {name}")
        return self.functions[base_name]

    def _publish(self, name: str, description: str) -> Dict[str, Any]:
        function = self._function(name)
        version = str(function["next_version"])
        function["next_version"] += 1
        configuration = copy.deepcopy(function["latest"])
        configuration.update({"Version": version, "Description": description, "FunctionArn": f"{function['latest']['FunctionArn']}:{version}"})
        function["versions"][version] = configuration
        return copy.deepcopy(configuration)

    def _put_alias(self, name: str, alias_name: str, version: str, description: str) -> Dict[str, Any]:
        function = self._function(name)
        alias = {
            "AliasArn": f"{function['latest']['FunctionArn']}:{alias_name}",
            "Name": alias_name,
            "FunctionVersion": version,
            "Description": description,
        }
        function["aliases"][alias_name] = alias
        return dict(alias)

    # boto3 surface
    def get_function(self, FunctionName):
        self._record("get_function", FunctionName=FunctionName)
        return {"Configuration": copy.deepcopy(self._function(FunctionName)["latest"])}

    def get_function_configuration(self, FunctionName, Qualifier=None):
        self._record("get_function_configuration", FunctionName=FunctionName, Qualifier=Qualifier)
        function = self._function(FunctionName)
        if Qualifier is None or Qualifier == "$LATEST":
            if self.poll_errors:
                raise self.poll_errors.pop(0)
            if self.poll_statuses:
                function["latest"]["LastUpdateStatus"] = self.poll_statuses.pop(0)
            return copy.deepcopy(function["latest"])
        if Qualifier in function["versions"]:
            return copy.deepcopy(function["versions"][Qualifier])
        raise client_error("ResourceNotFoundException", "GetFunctionConfiguration", f"Version {Qualifier} not found")

    def list_versions_by_function(self, FunctionName, Marker=None):
        self._record("list_versions_by_function", FunctionName=FunctionName, Marker=Marker)
        function = self._function(FunctionName)
        versions = [copy.deepcopy(function["latest"])] + [copy.deepcopy(v) for v in function["versions"].values()]
        start = int(Marker) if Marker else 0
        end = start + self.versions_page_size
        response = {"Versions": versions[start:end]}
        if end < len(versions):
            response["NextMarker"] = str(end)
        return response

    def update_function_configuration(self, FunctionName, Environment):
        self._record("update_function_configuration", FunctionName=FunctionName, Environment=Environment)
        function = self._function(FunctionName)
        function["latest"]["Environment"] = copy.deepcopy(Environment)
        function["latest"]["LastUpdateStatus"] = "InProgress" if self.poll_statuses else "Successful"
        return copy.deepcopy(function["latest"])

    def get_waiter(self, waiter_name):
        self._record("get_waiter", waiter_name=waiter_name)
        assert waiter_name == "function_updated"
        return FakeFunctionUpdatedWaiter(self)

    def publish_version(self, FunctionName, Description=""):
        self._record("publish_version", FunctionName=FunctionName, Description=Description)
        return self._publish(FunctionName, Description)

    def get_alias(self, FunctionName, Name):
        self._record("get_alias", FunctionName=FunctionName, Name=Name)
        function = self._function(FunctionName)
        if Name not in function["aliases"]:
            raise client_error("ResourceNotFoundException", "GetAlias", f"Alias not found: {Name}")
        return dict(function["aliases"][Name])

    def create_alias(self, FunctionName, Name, FunctionVersion, Description=""):
        self._record("create_alias", FunctionName=FunctionName, Name=Name, FunctionVersion=FunctionVersion, Description=Description)
        return self._put_alias(FunctionName, Name, FunctionVersion, Description)

    def update_alias(self, FunctionName, Name, FunctionVersion, Description=""):
        self._record("update_alias", FunctionName=FunctionName, Name=Name, FunctionVersion=FunctionVersion, Description=Description)
        if Name not in self._function(FunctionName)["aliases"]:
            raise client_error("ResourceNotFoundException", "UpdateAlias", f"Alias not found: {Name}")
        return self._put_alias(FunctionName, Name, FunctionVersion, Description)

    def add_permission(self, FunctionName, StatementId, Action, Principal, SourceArn=None, SourceAccount=None):
        self._record("add_permission", FunctionName=FunctionName, StatementId=StatementId, Action=Action, Principal=Principal, SourceArn=SourceArn)
        policy = self._function(FunctionName)["policies"].setdefault(FunctionName, {})
        if StatementId in policy:
            raise client_error("ResourceConflictException", "AddPermission", f"The statement id ({StatementId}) provided already exists.")
        statement = {"Sid": StatementId, "Action": Action, "Principal": {"Service": Principal}, "SourceArn": SourceArn}
        policy[StatementId] = statement
        return {"Statement": json.dumps(statement)}

    def remove_permission(self, FunctionName, StatementId):
        self._record("remove_permission", FunctionName=FunctionName, StatementId=StatementId)
        policy = self._function(FunctionName)["policies"].get(FunctionName, {})
        if StatementId not in policy:
            raise client_error("ResourceNotFoundException", "RemovePermission", "No policy is associated with the given resource.")
        del policy[StatementId]
        return {}


class FakeFunctionUpdatedWaiter:
    """Mirrors the acceptors of botocore's Lambda 'FunctionUpdated' waiter over the fake client."""

    NAME = "FunctionUpdated"

    def __init__(self, client: "FakeLambda") -> None:
        self._client = client

    def wait(self, FunctionName, WaiterConfig=None):
        max_attempts = (WaiterConfig or {}).get("MaxAttempts", 60)
        response: Dict[str, Any] = {}
        for _ in range(max_attempts):
            try:
                response = self._client.get_function_configuration(FunctionName=FunctionName)
            except ClientError as error:
                error_info = error.response["Error"]
                raise WaiterError(
                    name=self.NAME, reason=f"An error occurred ({error_info['Code']}): {error_info['Message']}", last_response=error.response
                )
            if response.get("LastUpdateStatus") == "Successful":
                return
            if response.get("LastUpdateStatus") == "Failed":
                raise WaiterError(
                    name=self.NAME,
                    reason='Waiter encountered a terminal failure state: For expression "LastUpdateStatus" we matched expected path: "Failed"',
                    last_response=response,
                )
        raise WaiterError(name=self.NAME, reason="Max attempts exceeded", last_response=response)


class FakeApiGateway(_RecordingClient):
    MUTATING_OPERATIONS = frozenset({"update_integration", "create_deployment", "update_stage", "create_stage"})

    def __init__(self) -> None:
        super().__init__()
        self.resources: List[Dict[str, Any]] = [{"id": "root0", "path": "/"}]
        self.integrations: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.stages: Dict[str, Dict[str, Any]] = {}
        self._deployment_count = 0

    def add_resource(self, resource_id: str, path: str, methods=("GET",)) -> None:
        self.resources.append({"id": resource_id, "path": path})
        for method in methods:
            self.integrations[(resource_id, method)] = {"type": "AWS_PROXY", "httpMethod": "POST", "uri": "arn:aws:apigateway:old"}

    def get_resources(self, restApiId, limit=25, position=None):
        self._record("get_resources", restApiId=restApiId, limit=limit, position=position)
        return {"items": copy.deepcopy(self.resources)}

    def get_integration(self, restApiId, resourceId, httpMethod):
        self._record("get_integration", restApiId=restApiId, resourceId=resourceId, httpMethod=httpMethod)
        if (resourceId, httpMethod) not in self.integrations:
            raise client_error("NotFoundException", "GetIntegration", "Invalid Integration identifier specified")
        return copy.deepcopy(self.integrations[(resourceId, httpMethod)])

    def update_integration(self, restApiId, resourceId, httpMethod, patchOperations):
        self._record("update_integration", restApiId=restApiId, resourceId=resourceId, httpMethod=httpMethod, patchOperations=patchOperations)
        integration = self.integrations[(resourceId, httpMethod)]
        for operation in patchOperations:
            integration[operation["path"].lstrip("/")] = operation["value"]
        return copy.deepcopy(integration)

    def create_deployment(self, restApiId, description=""):
        self._record("create_deployment", restApiId=restApiId, description=description)
        self._deployment_count += 1
        return {"id": f"deployment{self._deployment_count}", "description": description}

    def get_stage(self, restApiId, stageName):
        self._record("get_stage", restApiId=restApiId, stageName=stageName)
        if stageName not in self.stages:
            raise client_error("NotFoundException", "GetStage", "Invalid Stage identifier specified")
        return copy.deepcopy(self.stages[stageName])

    def create_stage(self, restApiId, stageName, deploymentId, variables=None):
        self._record("create_stage", restApiId=restApiId, stageName=stageName, deploymentId=deploymentId, variables=variables)
        self.stages[stageName] = {"stageName": stageName, "deploymentId": deploymentId, "variables": dict(variables or {})}
        return copy.deepcopy(self.stages[stageName])

    def update_stage(self, restApiId, stageName, patchOperations):
        self._record("update_stage", restApiId=restApiId, stageName=stageName, patchOperations=patchOperations)
        stage = self.stages[stageName]
        for operation in patchOperations:
            if operation["path"] == "/deploymentId":
                stage["deploymentId"] = operation["value"]
            elif operation["path"].startswith("/variables/"):
                stage["variables"][operation["path"][len("/variables/") :]] = operation["value"]
        return copy.deepcopy(stage)


class FakeApiGatewayV2(_RecordingClient):
    MUTATING_OPERATIONS = frozenset({"update_integration", "create_deployment", "update_stage", "create_stage"})

    def __init__(self) -> None:
        super().__init__()
        self.routes: List[Dict[str, Any]] = []
        self.integrations: List[Dict[str, Any]] = []
        self.stages: Dict[str, Dict[str, Any]] = {}
        self._deployment_count = 0

    def add_route(self, route_id: str, route_key: str, integration_id: Optional[str] = None) -> None:
        route = {"RouteId": route_id, "RouteKey": route_key}
        if integration_id:
            route["Target"] = f"integrations/{integration_id}"
            self.integrations.append({"IntegrationId": integration_id, "IntegrationType": "AWS_PROXY", "IntegrationUri": "arn:aws:apigateway:old"})
        self.routes.append(route)

    def integration(self, integration_id: str) -> Dict[str, Any]:
        return next(integration for integration in self.integrations if integration["IntegrationId"] == integration_id)

    def get_routes(self, ApiId, NextToken=None):
        self._record("get_routes", ApiId=ApiId, NextToken=NextToken)
        return {"Items": copy.deepcopy(self.routes)}

    def get_integrations(self, ApiId, NextToken=None):
        self._record("get_integrations", ApiId=ApiId, NextToken=NextToken)
        return {"Items": copy.deepcopy(self.integrations)}

    def update_integration(self, ApiId, IntegrationId, IntegrationUri):
        self._record("update_integration", ApiId=ApiId, IntegrationId=IntegrationId, IntegrationUri=IntegrationUri)
        integration = self.integration(IntegrationId)
        integration["IntegrationUri"] = IntegrationUri
        return copy.deepcopy(integration)

    def create_deployment(self, ApiId, Description=""):
        self._record("create_deployment", ApiId=ApiId, Description=Description)
        self._deployment_count += 1
        return {"DeploymentId": f"wsdeployment{self._deployment_count}", "Description": Description}

    def get_stage(self, ApiId, StageName):
        self._record("get_stage", ApiId=ApiId, StageName=StageName)
        if StageName not in self.stages:
            raise client_error("NotFoundException", "GetStage", "Invalid stage identifier specified")
        return copy.deepcopy(self.stages[StageName])

    def create_stage(self, ApiId, StageName, DeploymentId, StageVariables=None):
        self._record("create_stage", ApiId=ApiId, StageName=StageName, DeploymentId=DeploymentId, StageVariables=StageVariables)
        self.stages[StageName] = {"StageName": StageName, "DeploymentId": DeploymentId, "StageVariables": dict(StageVariables or {})}
        return copy.deepcopy(self.stages[StageName])

    def update_stage(self, ApiId, StageName, DeploymentId, StageVariables=None):
        self._record("update_stage", ApiId=ApiId, StageName=StageName, DeploymentId=DeploymentId, StageVariables=StageVariables)
        stage = self.stages[StageName]
        stage["DeploymentId"] = DeploymentId
        stage["StageVariables"].update(StageVariables or {})
        return copy.deepcopy(stage)


class FakeSTS(_RecordingClient):
    def get_caller_identity(self):
        self._record("get_caller_identity")
        return {"Account": ACCOUNT_ID, "Arn": f"arn:aws:iam::{ACCOUNT_ID}:user/deployer", "UserId": "AIDEXAMPLE"}


class FakeSession:
    def __init__(self, lambda_client: FakeLambda, apigateway: FakeApiGateway, apigatewayv2: FakeApiGatewayV2, sts: FakeSTS) -> None:
        self.clients = {"lambda": lambda_client, "apigateway": apigateway, "apigatewayv2": apigatewayv2, "sts": sts}
        self.created_clients: List[str] = []

    def client(self, service_name, region_name=None):
        self.created_clients.append(service_name)
        return self.clients[service_name]


@pytest.fixture
def lambda_backend():
    return FakeLambda()


@pytest.fixture
def rest_backend():
    return FakeApiGateway()


@pytest.fixture
def websocket_backend():
    return FakeApiGatewayV2()


@pytest.fixture
def sts_backend():
    return FakeSTS()


@pytest.fixture
def fake_session(lambda_backend, rest_backend, websocket_backend, sts_backend):
    return FakeSession(lambda_backend, rest_backend, websocket_backend, sts_backend)


@pytest.fixture
def run_context(fake_session):
    return RunContext(REGION, session=fake_session)


@pytest.fixture
def alias_config():
    return AliasConfig(alias="dev", stage="dev", region=REGION, rest_api_id=REST_API_ID, websocket_api_id=WEBSOCKET_API_ID)


@pytest.fixture
def per_function_config():
    return AliasConfig(
        alias="dev", stage="dev", region=REGION, rest_api_id=REST_API_ID, websocket_api_id=WEBSOCKET_API_ID, per_function_stage_vars=True
    )


@pytest.fixture
def make_client_error():
    return client_error
