# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from setuptools import find_packages, setup
from src.aliasflow import __version__ as version

#CLI_SCRIPTS = [
#    'my_app= aliasflow.tools:foo_main',
#]

REQUIRED_PACKAGES = [
    'boto3 >= 1.41.1',
    'overrides >= 7.0.0',
]

TEST_PACKAGES = [
    'moto >= 5.0.0',
    'pytest',
]

setup(
    name="aliasflow",
    python_requires=">=3.10",
    version=version,
    description="aliasflow keeps AWS Lambda aliases and the API Gateway (REST and WebSocket) integrations routing to them in sync.",
    keywords="aws lambda alias version api gateway websocket stage variables blue green deployment serverless",
    author="Amazon.com Inc.",
    license="Apache 2.0",

    packages=find_packages(where="src", exclude=("test", "test_integration")),
    package_dir={"": "src"},
    #entry_points={
    #    'cli_scripts': CLI_SCRIPTS,
    #},
    install_requires=REQUIRED_PACKAGES,
    extras_require={"test": TEST_PACKAGES},
    include_package_data=True,
)
