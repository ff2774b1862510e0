import os
import stat

import pytest

from scpwire import SCPClient
from scpwire.directory import DirectoryReconstructor
from scpwire.errors import (
    FilterError,
    LocalFileError,
    ProtocolError,
    TransportError,
)
from scpwire.filesystem import LocalFS
from scpwire.protocols import SCPHandler, SCPSink

from tests.unit.scp.fake_scp import (
    CONCRETE_TREE,
    ScriptedChannel,
    expected_snapshot,
    make_tree,
    snapshot,
)


BASE_TIME = 1_600_000_000

TREE = {'src': (0o755, CONCRETE_TREE)}


def root_state(path: str) -> tuple[int, int, int]:
    st = os.stat(path)
    return stat.S_IMODE(st.st_mode), int(st.st_mtime), int(st.st_atime)


class AcceptRecorder:
    def __init__(self, *rejected: str) -> None:
        self.rejected = set(rejected)
        self.seen: list[str] = []

    def __call__(self, parent_dir: str, info) -> bool:
        self.seen.append(info.name)
        return info.name not in self.rejected


class TestReceiveDir:
    @pytest.mark.asyncio
    async def test_new_destination_takes_the_remote_root(
        self,
        client: SCPClient,
        remote_root: str,
        local_root: str,
    ):
        make_tree(remote_root, TREE)
        dest = os.path.join(local_root, 'out')

        await client.receive_dir('src', dest)

        assert root_state(dest) == (0o755, BASE_TIME, BASE_TIME + 7)
        assert snapshot(dest) == expected_snapshot(
            CONCRETE_TREE,
            base_time=BASE_TIME + 1,
        )

    @pytest.mark.asyncio
    async def test_existing_destination_gets_a_child(
        self,
        client: SCPClient,
        remote_root: str,
        local_root: str,
    ):
        make_tree(remote_root, TREE)

        await client.receive_dir('src', local_root)

        assert snapshot(local_root) == expected_snapshot(TREE)

    @pytest.mark.asyncio
    async def test_rejected_directory_is_skipped_whole(
        self,
        client: SCPClient,
        remote_root: str,
        local_root: str,
    ):
        make_tree(remote_root, TREE)
        accept = AcceptRecorder('baz')

        await client.receive_dir('src', local_root, accept=accept)

        assert accept.seen == ['src', 'bar', 'baz', 'foo']
        assert sorted(snapshot(local_root)) == ['src', 'src/bar', 'src/foo']

    @pytest.mark.asyncio
    async def test_rejected_files_are_drained(
        self,
        client: SCPClient,
        transport,
        remote_root: str,
        local_root: str,
    ):
        make_tree(remote_root, TREE)
        accept = AcceptRecorder('hoge', 'emptyDir')

        await client.receive_dir('src', local_root, accept=accept)

        expected = expected_snapshot(TREE)
        del expected['src/baz/hoge']
        del expected['src/baz/emptyDir']

        assert snapshot(local_root) == expected
        assert transport.channels[0].exit_status == 0

    @pytest.mark.asyncio
    async def test_elided_root_is_never_filtered(
        self,
        client: SCPClient,
        remote_root: str,
        local_root: str,
    ):
        make_tree(remote_root, TREE)
        accept = AcceptRecorder('src')
        dest = os.path.join(local_root, 'out')

        await client.receive_dir('src', dest, accept=accept)

        assert 'src' not in accept.seen
        assert snapshot(dest) == expected_snapshot(
            CONCRETE_TREE,
            base_time=BASE_TIME + 1,
        )

    @pytest.mark.asyncio
    async def test_rejected_root_in_existing_destination(
        self,
        client: SCPClient,
        transport,
        remote_root: str,
        local_root: str,
    ):
        make_tree(remote_root, TREE)
        accept = AcceptRecorder('src')

        await client.receive_dir('src', local_root, accept=accept)

        assert accept.seen == ['src']
        assert os.listdir(local_root) == []
        assert not transport.channels[0].closed
        assert transport.channels[0].exit_status == 0

    @pytest.mark.asyncio
    async def test_async_accept(
        self,
        client: SCPClient,
        remote_root: str,
        local_root: str,
    ):
        make_tree(remote_root, TREE)

        async def accept(parent_dir: str, info) -> bool:
            return info.name != 'bar'

        await client.receive_dir('src', local_root, accept=accept)

        assert 'src/bar' not in snapshot(local_root)
        assert 'src/baz/hoge' in snapshot(local_root)

    @pytest.mark.asyncio
    async def test_failing_accept_aborts(
        self,
        client: SCPClient,
        transport,
        remote_root: str,
        local_root: str,
    ):
        make_tree(remote_root, TREE)

        def accept(parent_dir: str, info) -> bool:
            if info.name == 'baz':
                raise ValueError('no opinion')

            return True

        with pytest.raises(FilterError, match='no opinion') as exc_info:
            await client.receive_dir('src', local_root, accept=accept)

        assert exc_info.value.path == os.path.join(local_root, 'src', 'baz')
        assert transport.channels[0].closed

    @pytest.mark.asyncio
    async def test_warnings_between_entries_are_tolerated(
        self,
        transport_factory,
        client_factory,
        remote_root: str,
        local_root: str,
    ):
        make_tree(remote_root, TREE)
        transport = transport_factory(warn_before=['bar'])
        client = client_factory(transport)

        await client.receive_dir('src', local_root)

        assert snapshot(local_root) == expected_snapshot(TREE)
        assert transport.channels[0].exit_status == 1

    @pytest.mark.asyncio
    async def test_destination_file_is_rejected(
        self,
        client: SCPClient,
        remote_root: str,
        local_root: str,
        write_file,
    ):
        make_tree(remote_root, TREE)
        dest = write_file(os.path.join(local_root, 'plain'), b'')

        with pytest.raises(LocalFileError) as exc_info:
            await client.receive_dir('src', dest)

        assert exc_info.value.operation == 'receive directory'

    @pytest.mark.asyncio
    async def test_directory_cannot_replace_a_file(
        self,
        client: SCPClient,
        remote_root: str,
        local_root: str,
        write_file,
    ):
        make_tree(remote_root, TREE)
        write_file(os.path.join(local_root, 'src'), b'in the way')

        with pytest.raises(LocalFileError) as exc_info:
            await client.receive_dir('src', local_root)

        assert exc_info.value.operation == 'create directory'


class TestSendDir:
    @pytest.mark.asyncio
    async def test_new_remote_destination(
        self,
        client: SCPClient,
        transport,
        remote_root: str,
        local_root: str,
    ):
        make_tree(local_root, TREE)
        dest = os.path.join(remote_root, 'dest')

        await client.send_dir(os.path.join(local_root, 'src'), 'dest')

        assert transport.commands == ['scp -tpr dest']
        assert root_state(dest) == (0o755, BASE_TIME, BASE_TIME + 7)
        assert snapshot(dest) == expected_snapshot(
            CONCRETE_TREE,
            base_time=BASE_TIME + 1,
        )

    @pytest.mark.asyncio
    async def test_existing_remote_destination(
        self,
        client: SCPClient,
        remote_root: str,
        local_root: str,
    ):
        make_tree(local_root, TREE)
        os.makedirs(os.path.join(remote_root, 'inbox'))

        await client.send_dir(os.path.join(local_root, 'src'), 'inbox')

        assert snapshot(os.path.join(remote_root, 'inbox')) == expected_snapshot(TREE)

    @pytest.mark.asyncio
    async def test_header_order_is_depth_first_sorted(
        self,
        client: SCPClient,
        transport,
        local_root: str,
    ):
        make_tree(local_root, TREE)

        await client.send_dir(os.path.join(local_root, 'src'), 'dest')

        requests = [
            line.split(b' ')[-1].rstrip(b'\n') if line[:1] in b'CD' else line[:1]
            for line in transport.peers[0].received
            if line[:1] != b'T'
        ]

        assert requests == [
            b'src',
            b'bar',
            b'baz',
            b'emptyDir',
            b'E',
            b'foo',
            b'hoge',
            b'E',
            b'foo',
            b'E',
        ]

    @pytest.mark.asyncio
    async def test_rejected_entries_are_never_opened(
        self,
        client: SCPClient,
        remote_root: str,
        local_root: str,
        monkeypatch,
    ):
        make_tree(local_root, TREE)
        accept = AcceptRecorder('hoge', 'emptyDir')
        opened: list[str] = []
        open_read = LocalFS.open_read

        async def recording_open_read(self, path: str):
            opened.append(os.path.relpath(path, local_root))
            return await open_read(self, path)

        monkeypatch.setattr(LocalFS, 'open_read', recording_open_read)

        await client.send_dir(
            os.path.join(local_root, 'src'),
            'dest',
            accept=accept,
        )

        assert accept.seen == [
            'src',
            'bar',
            'baz',
            'emptyDir',
            'foo',
            'hoge',
            'foo',
        ]
        assert opened == ['src/bar', 'src/baz/foo', 'src/foo']
        assert sorted(snapshot(os.path.join(remote_root, 'dest'))) == [
            'bar',
            'baz',
            'baz/foo',
            'foo',
        ]

    @pytest.mark.asyncio
    async def test_rejected_directory_keeps_later_siblings(
        self,
        client: SCPClient,
        transport,
        remote_root: str,
        local_root: str,
    ):
        make_tree(local_root, TREE)

        await client.send_dir(
            os.path.join(local_root, 'src'),
            'dest',
            accept=AcceptRecorder('baz'),
        )

        assert sorted(snapshot(os.path.join(remote_root, 'dest'))) == ['bar', 'foo']
        assert not any(b'baz' in line for line in transport.peers[0].received)

    @pytest.mark.asyncio
    async def test_rejected_root_sends_nothing(
        self,
        client: SCPClient,
        transport,
        remote_root: str,
        local_root: str,
    ):
        make_tree(local_root, TREE)

        await client.send_dir(
            os.path.join(local_root, 'src'),
            'dest',
            accept=AcceptRecorder('src'),
        )

        assert transport.peers[0].received == []
        assert not os.path.exists(os.path.join(remote_root, 'dest'))

    @pytest.mark.asyncio
    async def test_symlinks_are_skipped(
        self,
        client: SCPClient,
        transport,
        remote_root: str,
        local_root: str,
    ):
        make_tree(local_root, TREE)
        os.symlink('foo', os.path.join(local_root, 'src', 'link'))

        await client.send_dir(os.path.join(local_root, 'src'), 'dest')

        assert not os.path.lexists(os.path.join(remote_root, 'dest', 'link'))
        assert not any(b'link' in line for line in transport.peers[0].received)

    @pytest.mark.asyncio
    async def test_file_source_is_rejected(
        self,
        client: SCPClient,
        local_root: str,
        write_file,
    ):
        src = write_file(os.path.join(local_root, 'plain'), b'')

        with pytest.raises(LocalFileError) as exc_info:
            await client.send_dir(src, 'dest')

        assert exc_info.value.operation == 'send directory'

    @pytest.mark.asyncio
    async def test_round_trip(
        self,
        client: SCPClient,
        local_root: str,
    ):
        make_tree(local_root, TREE)
        back = os.path.join(local_root, 'back')

        await client.send_dir(os.path.join(local_root, 'src'), 'dest')
        await client.receive_dir('dest', back)

        assert root_state(back) == (0o755, BASE_TIME, BASE_TIME + 7)
        assert snapshot(back) == expected_snapshot(
            CONCRETE_TREE,
            base_time=BASE_TIME + 1,
        )


class TestReconstructorStream:
    async def reconstruct(self, incoming: bytes, dest: str) -> ScriptedChannel:
        channel = ScriptedChannel(incoming)
        sink = SCPSink(SCPHandler(channel))
        reconstructor = DirectoryReconstructor(LocalFS(), sink)

        await reconstructor.reconstruct(dest)

        return channel

    @pytest.mark.asyncio
    async def test_files_without_times_keep_their_mode(self, local_root: str):
        channel = await self.reconstruct(
            b'D0750 0 sub\nC0640 3 a\nabc\0E\n',
            local_root,
        )

        path = os.path.join(local_root, 'sub', 'a')

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o640
        assert stat.S_IMODE(os.stat(os.path.dirname(path)).st_mode) == 0o750

        with open(path, 'rb') as entry:
            assert entry.read() == b'abc'

        assert bytes(channel.written) == b'\0\0\0\0'

    @pytest.mark.asyncio
    async def test_ok_reply_between_headers_is_ignored(self, local_root: str):
        channel = await self.reconstruct(
            b'\0D0755 0 src\nT1 0 2 0\nC0644 3 a\nabc\0E\n',
            local_root,
        )

        path = os.path.join(local_root, 'src', 'a')

        with open(path, 'rb') as entry:
            assert entry.read() == b'abc'

        assert int(os.stat(path).st_mtime) == 1
        assert bytes(channel.written) == b'\0' * 5

    @pytest.mark.asyncio
    async def test_close_failure_keeps_the_transfer_error(
        self,
        local_root: str,
        monkeypatch,
    ):
        closed: list[str] = []

        async def failing_close(fs, file):
            await file.close()
            closed.append(file.path)
            raise LocalFileError('close', file.path, [OSError('disk full')])

        monkeypatch.setattr(LocalFS, 'close', failing_close)

        with pytest.raises(TransportError, match='Connection lost'):
            await self.reconstruct(b'C0644 5 a\nab', local_root)

        assert closed == [os.path.join(local_root, 'a')]

    @pytest.mark.asyncio
    async def test_unbalanced_end_directory(self, local_root: str):
        with pytest.raises(ProtocolError, match='Unbalanced end directory'):
            await self.reconstruct(b'E\n', local_root)

    @pytest.mark.asyncio
    async def test_stream_ending_inside_a_directory(self, local_root: str):
        with pytest.raises(ProtocolError, match='Stream ended inside a directory'):
            await self.reconstruct(b'D0755 0 sub\n', local_root)

        assert os.path.isdir(os.path.join(local_root, 'sub'))


class TestSetAttributes:
    @pytest.mark.asyncio
    async def test_single_failure_keeps_its_operation(self, local_root: str):
        missing = os.path.join(local_root, 'missing')

        with pytest.raises(LocalFileError) as exc_info:
            await LocalFS().set_attributes(missing, 0o644)

        assert exc_info.value.operation == 'chmod'
        assert len(exc_info.value.errors) == 1

    @pytest.mark.asyncio
    async def test_both_failures_are_reported(self, local_root: str):
        missing = os.path.join(local_root, 'missing')

        with pytest.raises(LocalFileError) as exc_info:
            await LocalFS().set_attributes(missing, 0o644, 10, 20)

        assert exc_info.value.operation == 'chmod and set times'
        assert len(exc_info.value.errors) == 2
        assert all(isinstance(err, FileNotFoundError) for err in exc_info.value.errors)
