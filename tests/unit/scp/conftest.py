import os

import pytest

from scpwire import Env, SCPClient

from tests.unit.scp.fake_scp import FakeSCPTransport


@pytest.fixture
def env() -> Env:
    return Env(
        SCP_LOG_LEVEL="error",
        SCP_BLOCK_SIZE=16,
    )


@pytest.fixture
def remote_root(tmp_path) -> str:
    path = tmp_path / "remote"
    path.mkdir()
    return str(path)


@pytest.fixture
def local_root(tmp_path) -> str:
    path = tmp_path / "local"
    path.mkdir()
    return str(path)


@pytest.fixture
def transport_factory(remote_root: str):
    def create_transport(**options) -> FakeSCPTransport:
        return FakeSCPTransport(remote_root, **options)

    return create_transport


@pytest.fixture
def transport(transport_factory) -> FakeSCPTransport:
    return transport_factory()


@pytest.fixture
def client_factory(env: Env):
    def create_client(transport, **kwargs) -> SCPClient:
        return SCPClient(transport, env=env, **kwargs)

    return create_client


@pytest.fixture
def client(client_factory, transport: FakeSCPTransport) -> SCPClient:
    return client_factory(transport)


@pytest.fixture
def write_file():
    def create_file(
        path: str,
        data: bytes,
        mode: int = 0o644,
        mtime: int = 1_500_000_000,
        atime: int = 1_500_000_100,
    ) -> str:
        os.makedirs(os.path.dirname(path), exist_ok=True)

        with open(path, "wb") as entry:
            entry.write(data)

        os.utime(path, (atime, mtime))
        os.chmod(path, mode)

        return path

    return create_file
