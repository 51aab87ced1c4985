import pytest
from unittest.mock import patch


class FakeAccounts:
    """In-memory stand-in for the system user/group database."""

    def __init__(
        self, uid=1000, gid=1000, users=None, groups=None, fail_uid=False, fail_gid=False
    ):
        self.uid = uid
        self.gid = gid
        self.users = users or {}
        self.groups = groups or {}
        self.fail_uid = fail_uid
        self.fail_gid = fail_gid
        self.calls = []

    def user_name_for_uid(self, uid):
        return self.users.get(uid)

    def group_name_for_gid(self, gid):
        return self.groups.get(gid)

    def current_ids(self, user_name):
        return self.uid, self.gid

    def set_uid(self, user_name, uid):
        self.calls.append(("usermod", user_name, uid))
        if self.fail_uid:
            return False
        self.uid = uid
        return True

    def set_gid(self, group_name, gid):
        self.calls.append(("groupmod", group_name, gid))
        if self.fail_gid:
            return False
        self.gid = gid
        return True


@pytest.fixture
def accounts():
    """Account database where 'node' has uid/gid 1000."""
    return FakeAccounts(users={1000: "node"}, groups={1000: "node"})


@pytest.fixture
def marker_path(tmp_path):
    """Location for a first-run marker that does not exist yet."""
    return tmp_path / "state" / "first_run_complete"


@pytest.fixture(autouse=True)
def mock_execvp():
    """Never replace the test process."""
    with patch("os.execvp") as mock_exec:
        yield mock_exec
