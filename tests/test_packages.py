"""Tests for package listing and removal."""
import asyncio
import json

import pytest

from conftest import FakeRunner, fail, ok
from devscope.core.models import PackageManagerName
from devscope.modules.packages import (
    PackageLister,
    is_valid_package_name,
    parse_composer_output,
    parse_npm_output,
    parse_pip_output,
)

NPM_JSON = json.dumps(
    {
        "name": "lib",
        "dependencies": {
            "npm": {"version": "9.8.1"},
            "@angular/cli": {"version": "16.1.0"},
            "broken": {},
        },
    }
)

PIP_JSON = json.dumps(
    [
        {"name": "requests", "version": "2.31.0"},
        {"name": "black", "version": "23.7.0"},
    ]
)


class TestParsers:
    """Test package list parsers."""

    def test_npm_json(self):
        """npm JSON dependencies become packages."""
        packages = parse_npm_output(NPM_JSON)
        assert [(p.name, p.version) for p in packages] == [
            ("npm", "9.8.1"),
            ("@angular/cli", "16.1.0"),
            ("broken", "unknown"),
        ]
        assert all(p.manager is PackageManagerName.NPM for p in packages)
        assert all(p.location == "global" for p in packages)

    def test_npm_unix_tree(self):
        """Box-drawing tree output is parsed."""
        output = "/usr/local/lib\n├── npm@9.8.1\n└── @vue/cli@5.0.8\n"
        packages = parse_npm_output(output)
        assert [(p.name, p.version) for p in packages] == [
            ("npm", "9.8.1"),
            ("@vue/cli", "5.0.8"),
        ]

    def test_npm_windows_tree(self):
        """ASCII tree output is parsed."""
        output = "C:\\Users\\dev\\AppData\\Roaming\\npm\n+-- npm@9.8.1\n`-- typescript@5.1.6\n"
        packages = parse_npm_output(output)
        assert [(p.name, p.version) for p in packages] == [
            ("npm", "9.8.1"),
            ("typescript", "5.1.6"),
        ]

    def test_npm_empty(self):
        """Empty or unrecognised output yields nothing."""
        assert parse_npm_output("") == []
        assert parse_npm_output("(empty)") == []

    def test_pip_json(self):
        """pip JSON output is parsed."""
        packages = parse_pip_output(PIP_JSON)
        assert [(p.name, p.version) for p in packages] == [
            ("requests", "2.31.0"),
            ("black", "23.7.0"),
        ]
        assert all(p.location == "site-packages" for p in packages)

    def test_pip_columns(self):
        """The legacy column table is parsed after the separator line."""
        output = "Package    Version\n---------- -------\nrequests   2.31.0\nurllib3    2.0.4\n"
        packages = parse_pip_output(output)
        assert [(p.name, p.version) for p in packages] == [
            ("requests", "2.31.0"),
            ("urllib3", "2.0.4"),
        ]

    def test_composer_json_installed(self):
        """Composer's {installed: [...]} document is parsed."""
        output = json.dumps(
            {
                "installed": [
                    {
                        "name": "laravel/installer",
                        "version": "v4.5.0",
                        "description": "Laravel application installer.",
                    }
                ]
            }
        )
        (package,) = parse_composer_output(output)
        assert package.name == "laravel/installer"
        assert package.version == "v4.5.0"
        assert package.description == "Laravel application installer."
        assert package.manager is PackageManagerName.COMPOSER

    def test_composer_json_list(self):
        """A bare JSON list is accepted as well."""
        output = json.dumps([{"name": "phpunit/phpunit", "version": "10.3.1"}])
        (package,) = parse_composer_output(output)
        assert package.name == "phpunit/phpunit"
        assert package.description is None

    def test_composer_text(self):
        """Plain `composer global show` lines are parsed."""
        output = (
            "laravel/installer v4.5.0 Laravel application installer.\n"
            "symfony/console   v6.3.2 Eases the creation of beautiful command line interfaces\n"
            "not a package line\n"
        )
        packages = parse_composer_output(output)
        assert [(p.name, p.version) for p in packages] == [
            ("laravel/installer", "v4.5.0"),
            ("symfony/console", "v6.3.2"),
        ]
        assert packages[0].description == "Laravel application installer."

    @pytest.mark.parametrize(
        "name,valid",
        [
            ("left-pad", True),
            ("@scope/pkg", True),
            ("vendor/package", True),
            ("zope.interface", True),
            ("", False),
            ("foo; rm -rf /", False),
            ("$(whoami)", False),
            ("pkg && echo", False),
            ("-rf", False),
        ],
    )
    def test_package_name_validation(self, name, valid):
        """Only plain package names are accepted."""
        assert is_valid_package_name(name) is valid


class TestPackageLister:
    """Test PackageLister against a scripted runner."""

    def test_list_npm(self):
        """npm packages are listed from JSON output."""
        runner = FakeRunner(responses={"npm list -g --depth=0 --json": ok(NPM_JSON)})
        packages = asyncio.run(PackageLister(runner, "Linux").list_npm())
        assert len(packages) == 3

    def test_list_npm_nonzero_with_output(self):
        """npm's non-zero exit with a printed tree still counts."""
        runner = FakeRunner(
            responses={"npm list -g --depth=0 --json": fail("peer dep missing", 1, stdout=NPM_JSON)}
        )
        packages = asyncio.run(PackageLister(runner, "Linux").list_npm())
        assert len(packages) == 3

    def test_list_npm_missing(self):
        """Without npm the list is empty."""
        packages = asyncio.run(PackageLister(FakeRunner(), "Linux").list_npm())
        assert packages == []

    def test_list_pip_finds_working_variant(self):
        """The first pip variant that answers is used and remembered."""
        runner = FakeRunner(
            responses={
                "pip --version": ok("pip 23.2.1"),
                "pip list --format=json": ok(PIP_JSON),
            }
        )
        lister = PackageLister(runner, "Linux")

        packages = asyncio.run(lister.list_pip())
        asyncio.run(lister.list_pip())

        assert [p.name for p in packages] == ["requests", "black"]
        assert runner.count("pip3 --version") == 1
        assert runner.count("pip --version") == 1
        assert runner.count("pip list --format=json") == 2

    def test_list_pip_none_available(self):
        """No pip at all yields an empty list."""
        packages = asyncio.run(PackageLister(FakeRunner(), "Linux").list_pip())
        assert packages == []

    def test_pip_windows_variants(self):
        """Windows prefers the py launcher."""
        runner = FakeRunner(
            responses={"py -m pip --version": ok("pip 23.2.1")},
            os_type="Windows",
        )
        command = asyncio.run(PackageLister(runner, "Windows").get_working_pip_command())
        assert command == "py -m pip"

    def test_list_composer_text_fallback(self):
        """Older Composer without --format falls back to text."""
        runner = FakeRunner(
            responses={
                "composer global show": ok("laravel/installer v4.5.0 Laravel application installer.\n")
            }
        )
        packages = asyncio.run(PackageLister(runner, "Linux").list_composer())
        assert [p.name for p in packages] == ["laravel/installer"]

    def test_list_packages_dispatch(self):
        """list_packages accepts the manager name as a string."""
        runner = FakeRunner(responses={"npm list -g --depth=0 --json": ok(NPM_JSON)})
        packages = asyncio.run(PackageLister(runner, "Linux").list_packages("npm"))
        assert len(packages) == 3

    def test_uninstall_npm(self):
        """npm packages are removed globally with a long timeout."""
        runner = FakeRunner(responses={"npm uninstall -g typescript": ok()})
        removed = asyncio.run(
            PackageLister(runner, "Linux").uninstall_package("typescript", PackageManagerName.NPM)
        )
        assert removed is True
        assert runner.timeouts["npm uninstall -g typescript"] == 120_000

    def test_uninstall_pip_uses_working_command(self):
        """pip removal uses the detected pip invocation."""
        runner = FakeRunner(
            responses={
                "pip3 --version": ok("pip 23.2.1"),
                "pip3 uninstall -y requests": ok(),
            }
        )
        removed = asyncio.run(PackageLister(runner, "Linux").uninstall_package("requests", "pip"))
        assert removed is True
        assert "pip3 uninstall -y requests" in runner.calls

    def test_uninstall_composer(self):
        """Composer packages are removed with `global remove`."""
        runner = FakeRunner(responses={"composer global remove laravel/installer": ok()})
        removed = asyncio.run(
            PackageLister(runner, "Linux").uninstall_package("laravel/installer", "composer")
        )
        assert removed is True

    def test_uninstall_failure(self):
        """A failing uninstall command returns False."""
        runner = FakeRunner(responses={"npm uninstall -g typescript": fail("EACCES", 243)})
        removed = asyncio.run(PackageLister(runner, "Linux").uninstall_package("typescript", "npm"))
        assert removed is False

    def test_uninstall_rejects_unsafe_name(self):
        """Names with shell syntax never reach the runner."""
        runner = FakeRunner()
        removed = asyncio.run(
            PackageLister(runner, "Linux").uninstall_package("x; rm -rf ~", "npm")
        )
        assert removed is False
        assert runner.calls == []

    def test_uninstall_unknown_manager(self):
        """Unknown managers return False."""
        runner = FakeRunner()
        removed = asyncio.run(PackageLister(runner, "Linux").uninstall_package("serde", "cargo"))
        assert removed is False
        assert runner.calls == []

    def test_is_manager_available(self):
        """Availability is checked with --version."""
        runner = FakeRunner(responses={"composer --version": ok("Composer version 2.5.8")})
        lister = PackageLister(runner, "Linux")
        assert asyncio.run(lister.is_manager_available("composer")) is True
        assert asyncio.run(lister.is_manager_available("npm")) is False
