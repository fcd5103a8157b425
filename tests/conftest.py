import types

import pytest

from wpstack.config.models import ConnectionSpec, SiteParameters


# ----------------- Fakes for paramiko channels -----------------

class FakeChannel:
    """
    Serves canned stdout/stderr in one chunk each, then reports exit status.
    ``rc=None`` means the server never sent one (paramiko returns -1).
    ``hang=True`` never finishes.
    """
    def __init__(self, out="", err="", rc=0, hang=False):
        self._out = out.encode()
        self._err = err.encode()
        self._rc = -1 if rc is None else rc
        self.hang = hang
        self.closed = False

    def recv_ready(self): return bool(self._out)
    def recv(self, n):
        data, self._out = self._out[:n], self._out[n:]
        return data
    def recv_stderr_ready(self): return bool(self._err)
    def recv_stderr(self, n):
        data, self._err = self._err[:n], self._err[n:]
        return data
    def exit_status_ready(self): return not self.hang
    def recv_exit_status(self): return self._rc
    def close(self): self.closed = True


class FakeSession:
    """
    Stands in for RemoteSession. ``responses`` is a list of
    ``(substring, (stdout, stderr, rc))``; the first substring found in the
    command wins, anything else succeeds with no output. A callable in place
    of the tuple is called with the command.
    """
    def __init__(self, responses=None, port=22, timeline=None):
        self.responses = list(responses or [])
        self.port = port
        self.commands = []
        self.channels = []
        self.timeline = timeline if timeline is not None else []
        self.close_count = 0
        self.closed = False

    def respond(self, needle, out="", err="", rc=0, hang=False):
        self.responses.insert(0, (needle, (out, err, rc, hang)))

    def exec_command(self, cmd, timeout=None):
        if self.closed:
            from wpstack.errors import SessionUnavailable
            raise SessionUnavailable("closed")
        self.commands.append(cmd)
        self.timeline.append(("cmd", cmd))
        out, err, rc, hang = "", "", 0, False
        for needle, resp in self.responses:
            if needle in cmd:
                if callable(resp):
                    resp = resp(cmd)
                out, err, rc = resp[:3]
                hang = resp[3] if len(resp) > 3 else False
                break
        chan = FakeChannel(out, err, rc, hang=hang)
        self.channels.append(chan)
        stdout = types.SimpleNamespace(channel=chan)
        return None, stdout, None

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.close_count += 1

    def ran(self, needle):
        return [c for c in self.commands if needle in c]

    def index_of(self, needle):
        for i, c in enumerate(self.commands):
            if needle in c:
                return i
        raise AssertionError(f"no command containing {needle!r}")


@pytest.fixture
def connection():
    return ConnectionSpec(host="203.0.113.10", port=2222, username="ubuntu", password="s3cret")


@pytest.fixture
def site():
    return SiteParameters(domain="example.com", site_title="Example", admin_user="admin", enable_ssl=False)


@pytest.fixture
def ssl_site():
    return SiteParameters(domain="example.com", site_title="Example", admin_user="admin", enable_ssl=True)


@pytest.fixture
def make_session():
    def _make(responses=None, port=22, timeline=None):
        return FakeSession(responses=responses, port=port, timeline=timeline)
    return _make
