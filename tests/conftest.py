import pytest

from cashdrawer_bridge import drawer, server
from cashdrawer_bridge.config import BridgeConfig
from cashdrawer_bridge.hardware import Discovery, Transport


class RecordingTransport(Transport):
    """Transport that records calls and can fail at a chosen stage."""

    def __init__(self, fail_at=None, error=None, accept=None):
        self.fail_at = fail_at
        self.error = error
        self.accept = accept
        self.calls = []
        self.written = b''

    def _stage(self, name):
        self.calls.append(name)
        if self.fail_at == name:
            raise self.error

    def open(self, printer_name):
        self._stage('open')
        self.printer_name = printer_name

    def start_document(self, document_name='Open Cash Drawer'):
        self._stage('start_document')

    def start_page(self):
        self._stage('start_page')

    def write(self, data):
        self._stage('write')
        self.written = data
        return len(data) if self.accept is None else self.accept

    def close(self):
        self._stage('close')


class StaticDiscovery(Discovery):
    def __init__(self, listing=None, error=None):
        self.listing = listing
        self.error = error
        self.calls = 0

    def list_printers(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.listing


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def make_bridge():
    def _make(transport=None, discovery=None, **kwargs):
        transport = transport or RecordingTransport()
        return drawer.CashDrawerBridge(
            transport_factory=lambda name: transport,
            discovery=discovery or StaticDiscovery([]),
            **kwargs,
        )
    return _make


@pytest.fixture
def config(tmp_path):
    return BridgeConfig(tmp_path / 'bridge_config.json')


@pytest.fixture(autouse=True)
def isolated_globals(config):
    """Keep the process-wide bridge and server config away from the user's files."""
    drawer.set_bridge(None)
    server._config = config
    yield
    drawer.set_bridge(None)
    server._config = None
