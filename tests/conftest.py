import os
import sys
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest


# Ensure 'draco' layer is importable at collection time (module import stage)
_repo_root = Path(__file__).resolve().parents[1]
# Ensure project root and 'src' are on sys.path for flexible imports
_repo_root_str = str(_repo_root)
_src_path_str = str(_repo_root / "src")
if _repo_root_str not in sys.path:
    sys.path.insert(0, _repo_root_str)
if _src_path_str not in sys.path:
    sys.path.insert(0, _src_path_str)
_layer_path = _repo_root / "src" / "lambda" / "layers" / "common" / "python"
_layer_str = str(_layer_path)
if _layer_str not in sys.path:
    sys.path.insert(0, _layer_str)

PRODUCTION_ACCOUNT = "111111111111"
DR_ACCOUNT = "222222222222"
REGION = "us-east-1"

_DRACO_ENV = (
    "ENVIRONMENT",
    "KEY_ARN",
    "TRANSIT_KEY_ARN",
    "DR_ACCT",
    "DR_TOPIC_ARN",
    "PRODUCER_TOPIC_ARN",
    "STATE_MACHINE_ARN",
    "SM_COPY_ARN",
    "TAG_KEY",
    "TAG_VALUE",
    "DEBUG",
    "DRY_RUN",
    "KEY_STORE",
    "KEY_BUCKET",
    "PRODUCER_ROLE_NAME",
    "MAX_POLL_ITERATIONS",
    "POLL_INTERVAL",
)


@pytest.fixture(autouse=True)
def aws_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Ensure default AWS region is set for moto/boto3 clients and clear cross-test env leaks."""
    monkeypatch.setenv("AWS_REGION", REGION)
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    # Provide dummy credentials so botocore signing doesn't fail under moto
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", os.environ.get("AWS_ACCESS_KEY_ID", "testing"))
    monkeypatch.setenv(
        "AWS_SECRET_ACCESS_KEY",
        os.environ.get("AWS_SECRET_ACCESS_KEY", "testing"),
    )
    monkeypatch.setenv("AWS_SESSION_TOKEN", os.environ.get("AWS_SESSION_TOKEN", "testing"))

    for name in _DRACO_ENV:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def producer_env(monkeypatch: pytest.MonkeyPatch) -> Callable[..., None]:
    """Apply producer Lambda environment variables."""

    def _apply(*, dry_run: bool = False, transit_key_arn: str | None = None, environment: str = "test") -> None:
        monkeypatch.setenv("ENVIRONMENT", environment)
        monkeypatch.setenv("DR_ACCT", DR_ACCOUNT)
        monkeypatch.setenv("DR_TOPIC_ARN", f"arn:aws:sns:{REGION}:{DR_ACCOUNT}:draco-dr-test")
        monkeypatch.setenv(
            "STATE_MACHINE_ARN",
            f"arn:aws:states:{REGION}:{PRODUCTION_ACCOUNT}:stateMachine:draco-copy-wait-test",
        )
        monkeypatch.setenv("DRY_RUN", "true" if dry_run else "false")
        if transit_key_arn:
            monkeypatch.setenv("TRANSIT_KEY_ARN", transit_key_arn)

    return _apply


@pytest.fixture
def consumer_env(monkeypatch: pytest.MonkeyPatch) -> Callable[..., None]:
    """Apply consumer Lambda environment variables."""

    def _apply(*, dry_run: bool = False, key_store: str = "alias", environment: str = "test") -> None:
        monkeypatch.setenv("ENVIRONMENT", environment)
        monkeypatch.setenv("DR_ACCT", DR_ACCOUNT)
        monkeypatch.setenv("PRODUCER_TOPIC_ARN", f"arn:aws:sns:{REGION}:{PRODUCTION_ACCOUNT}:draco-producer-test")
        monkeypatch.setenv(
            "STATE_MACHINE_ARN",
            f"arn:aws:states:{REGION}:{DR_ACCOUNT}:stateMachine:draco-copy-wait-test",
        )
        monkeypatch.setenv("KEY_STORE", key_store)
        monkeypatch.setenv("DRY_RUN", "true" if dry_run else "false")

    return _apply


@pytest.fixture
def producer_settings():
    from draco.models.settings import DracoSettings

    return DracoSettings(
        environment="test",
        region=REGION,
        dr_account=DR_ACCOUNT,
        dr_topic_arn=f"arn:aws:sns:{REGION}:{DR_ACCOUNT}:draco-dr-test",
        state_machine_arn=f"arn:aws:states:{REGION}:{PRODUCTION_ACCOUNT}:stateMachine:draco-copy-wait-test",
    )


@pytest.fixture
def consumer_settings():
    from draco.models.settings import DracoSettings

    return DracoSettings(
        environment="test",
        region=REGION,
        dr_account=DR_ACCOUNT,
        producer_topic_arn=f"arn:aws:sns:{REGION}:{PRODUCTION_ACCOUNT}:draco-producer-test",
        state_machine_arn=f"arn:aws:states:{REGION}:{DR_ACCOUNT}:stateMachine:draco-copy-wait-test",
        producer_role_name=f"DracoProducer-{REGION}",
    )


@pytest.fixture
def lambda_context() -> Any:
    class _Context:
        aws_request_id = "req-0001"
        function_name = "draco-test"

    return _Context()


@pytest.fixture
def fake_python_function(
    monkeypatch: pytest.MonkeyPatch,
) -> Callable[[Any], None]:
    from aws_cdk import Duration

    def _apply(target_module: Any) -> None:
        from aws_cdk import aws_lambda as lambda_

        def _fake(scope, id, **kwargs):
            return lambda_.Function(
                scope,
                id,
                function_name=kwargs.get("function_name"),
                runtime=lambda_.Runtime.PYTHON_3_12,
                handler="index.handler",
                code=lambda_.Code.from_inline("def handler(event, context): return {}"),
                memory_size=kwargs.get("memory_size", 128),
                timeout=kwargs.get("timeout", Duration.seconds(10)),
                log_retention=kwargs.get("log_retention"),
                role=kwargs.get("role"),
                layers=kwargs.get("layers", []),
                environment=kwargs.get("environment", {}),
            )

        monkeypatch.setattr(target_module, "PythonFunction", _fake, raising=False)

    return _apply


def pytest_configure(config):
    """Configure pytest with essential markers."""
    config.addinivalue_line("markers", "unit: unit test")
    config.addinivalue_line("markers", "integration: integration test")
    config.addinivalue_line("markers", "infrastructure: CDK synthesis test")
    config.addinivalue_line("markers", "slow: slow running test")


def pytest_addoption(parser):
    """Add essential command line options."""
    parser.addoption("--runslow", action="store_true", default=False, help="run slow tests")


def pytest_collection_modifyitems(config, items):
    """Add markers based on file location."""
    rootdir = Path(config.rootdir)

    for item in items:
        rel_path = Path(item.fspath).relative_to(rootdir)

        if "unit" in rel_path.parts:
            item.add_marker(pytest.mark.unit)
        if "integration" in rel_path.parts:
            item.add_marker(pytest.mark.integration)
        if "infrastructure" in rel_path.parts:
            item.add_marker(pytest.mark.infrastructure)


def pytest_runtest_setup(item):
    """Skip slow tests unless --runslow is given."""
    if "slow" in item.keywords and not item.config.getoption("--runslow"):
        pytest.skip("need --runslow option to run")
