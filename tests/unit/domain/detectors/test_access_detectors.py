"""Unit tests for the access detectors: filesystem (FT003), network (FT004) and database (FT005)."""

import pytest

from flakiness_linter.domain.detectors import (
    DatabaseOperationsDetector,
    UnmockedFsDetector,
    UnmockedNetworkDetector,
)
from tests.linter_test_utils import message_ids, run_detector


def _in_test(body: str) -> str:
    return f"it('x', async () => {{ {body} }});"


class TestUnmockedFsDetector:
    def test_setup_hook_needs_mock_unless_allowed(self) -> None:
        code = "beforeAll(() => { fs.mkdirSync('d'); });"
        findings = run_detector(UnmockedFsDetector, code)
        assert message_ids(findings) == ["mockFs"]
        assert findings[0].message_data == {"method": "mkdirSync"}
        assert run_detector(UnmockedFsDetector, code, allowInSetup=True) == []

    def test_setup_exemption_does_not_apply_with_path_restrictions(self) -> None:
        code = "beforeAll(() => { fs.mkdirSync('d'); });"
        findings = run_detector(UnmockedFsDetector, code, allowInSetup=True, allowedPaths=["./data"])
        assert message_ids(findings) == ["mockFs"]

    def test_test_body(self) -> None:
        findings = run_detector(UnmockedFsDetector, _in_test("fs.readFileSync('config.json');"))
        assert message_ids(findings) == ["unmockedFs"]

    @pytest.mark.parametrize(("code", "expected"), [
        ("const fse = require('fs-extra');\n" + _in_test("fse.outputFileSync('out.txt', '');"), "useMemfs"),
        ("const { execSync } = require('child_process');\n" + _in_test("execSync('ls');"), "avoidRealFs"),
        (_in_test("glob.sync('**/*.js');"), "needsMock"),
        ("import { readFile } from 'node:fs/promises';\n" + _in_test("await readFile('a.txt');"), "unmockedFs"),
    ])
    def test_module_families(self, code: str, expected: str) -> None:
        assert message_ids(run_detector(UnmockedFsDetector, code)) == [expected]

    @pytest.mark.parametrize("body", [
        "fs.writeFileSync('/tmp/out.txt', 'x');",
        "fs.writeFileSync(path.join(os.tmpdir(), 'out.txt'), 'x');",
        "fs.readFileSync(path.join(__dirname, '__fixtures__', 'a.json'));",
        "fs.existsSync;",
        "path.join('a', 'b');",
    ])
    def test_allowed_access(self, body: str) -> None:
        assert run_detector(UnmockedFsDetector, _in_test(body)) == []

    def test_temp_files_can_be_disallowed(self) -> None:
        code = _in_test("fs.writeFileSync('/tmp/out.txt', 'x');")
        assert message_ids(run_detector(UnmockedFsDetector, code, allowTempFiles=False)) == ["unmockedFs"]

    def test_allowed_paths_and_modules(self) -> None:
        code = _in_test("fs.readFileSync('./data/a.json');")
        assert run_detector(UnmockedFsDetector, code, allowedPaths=["./data"]) == []
        assert run_detector(UnmockedFsDetector, code, allowedModules=["fs"]) == []

    def test_mocked_module(self) -> None:
        code = "jest.mock('fs');\n" + _in_test("fs.readFileSync('config.json');")
        assert run_detector(UnmockedFsDetector, code) == []

    def test_mock_fs_library_covers_fs_extra(self) -> None:
        code = "import mock from 'mock-fs';\nconst fse = require('fs-extra');\n" + _in_test("fse.readJsonSync('a.json');")
        assert run_detector(UnmockedFsDetector, code) == []


class TestUnmockedNetworkDetector:
    def test_fetch_to_remote_host(self) -> None:
        findings = run_detector(UnmockedNetworkDetector, _in_test("await fetch('https://example.com/api');"))
        assert message_ids(findings) == ["mockNetwork"]
        assert findings[0].message == "Unmocked network request via 'fetch'; mock it with msw, nock or jest.mock()."

    def test_known_external_api(self) -> None:
        code = _in_test("await fetch('https://jsonplaceholder.typicode.com/todos/1');")
        assert message_ids(run_detector(UnmockedNetworkDetector, code)) == ["avoidExternalAPI"]

    def test_localhost(self) -> None:
        code = _in_test("await fetch('http://localhost:3000/api');")
        assert run_detector(UnmockedNetworkDetector, code) == []
        assert message_ids(run_detector(UnmockedNetworkDetector, code, allowLocalhost=False)) == ["mockNetwork"]

    def test_allowed_domains_include_subdomains(self) -> None:
        code = _in_test("await fetch('https://api.example.com/v1');")
        assert run_detector(UnmockedNetworkDetector, code, allowedDomains=["example.com"]) == []

    def test_fetch_needs_url_like_argument(self) -> None:
        assert run_detector(UnmockedNetworkDetector, _in_test("await fetch(thing);")) == []
        assert message_ids(run_detector(UnmockedNetworkDetector, _in_test("await fetch(apiUrl);"))) == ["mockNetwork"]

    def test_axios(self) -> None:
        findings = run_detector(UnmockedNetworkDetector, _in_test("await axios.get('/users');"))
        assert findings[0].message_data == {"method": "axios.get"}
        mocked = "jest.mock('axios');\n" + _in_test("await axios.get('/users');")
        assert run_detector(UnmockedNetworkDetector, mocked) == []

    def test_xhr_and_websocket(self) -> None:
        assert message_ids(run_detector(UnmockedNetworkDetector, _in_test("const x = new XMLHttpRequest();"))) \
            == ["mockNetwork"]
        assert run_detector(UnmockedNetworkDetector, _in_test("new WebSocket('ws://localhost:8080');")) == []
        assert len(run_detector(UnmockedNetworkDetector, _in_test("new WebSocket('wss://echo.example.org');"))) == 1

    def test_msw_covers_fetch(self) -> None:
        code = "import { setupServer } from 'msw/node';\n" + _in_test("await fetch('https://example.com/api');")
        assert run_detector(UnmockedNetworkDetector, code) == []

    def test_integration_files(self) -> None:
        code = _in_test("await fetch('https://example.com/api');")
        path = "api/users.integration.test.ts"
        assert len(run_detector(UnmockedNetworkDetector, code, path)) == 1
        assert run_detector(UnmockedNetworkDetector, code, path, allowInIntegration=True) == []


class TestDatabaseOperationsDetector:
    def test_model_write_in_test(self) -> None:
        findings = run_detector(DatabaseOperationsDetector, _in_test("await User.create({ name: 'a' });"))
        assert message_ids(findings) == ["avoidDbOperation"]
        assert findings[0].message_data == {"operation": "User.create"}

    def test_write_in_hook(self) -> None:
        code = "beforeEach(async () => { await User.create({}); });"
        assert message_ids(run_detector(DatabaseOperationsDetector, code)) == ["useTransaction"]
        assert message_ids(run_detector(DatabaseOperationsDetector, code, allowInHooks=False)) == ["avoidDbOperation"]

    def test_raw_sql(self) -> None:
        code = _in_test("await db.query('SELECT * FROM users');")
        assert message_ids(run_detector(DatabaseOperationsDetector, code)) == ["avoidRawQuery"]

    def test_schema_operations(self) -> None:
        findings = run_detector(DatabaseOperationsDetector, _in_test("await sequelize.sync({ force: true });"))
        assert message_ids(findings) == ["needsIsolation"]
        assert run_detector(DatabaseOperationsDetector, "beforeAll(() => sequelize.sync());") == []

    @pytest.mark.parametrize("body", [
        "await prisma.user.create({ data: {} });",
        "await db.collection('users').insertOne({});",
        "await knex('users').insert({ id: 1 });",
        "await userRepository.save(user);",
    ])
    def test_write_shapes(self, body: str) -> None:
        assert message_ids(run_detector(DatabaseOperationsDetector, _in_test(body))) == ["avoidDbOperation"]

    @pytest.mark.parametrize("body", [
        "await mockUserModel.create({});",
        "list.delete(item);",
        "cache.get('user:1');",
    ])
    def test_ignored(self, body: str) -> None:
        assert run_detector(DatabaseOperationsDetector, _in_test(body)) == []
