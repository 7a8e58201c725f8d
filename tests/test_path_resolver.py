# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for PathResolver.

Tests import specifier resolution including:
- Relative specifiers with ./ and ../ prefixes
- Extension inference in priority order
- Directory resolution to index files
- Bare and aliased specifiers
- Project boundary checks
"""

import os
from pathlib import Path

import pytest

from class_relations.path_resolver import PathResolver


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a small project tree."""
    files = [
        "src/models/User.ts",
        "src/models/Profile.ts",
        "src/models/index.ts",
        "src/services/UserService.ts",
        "src/services/AuthService.tsx",
        "src/components/common/index.ts",
        "src/App.jsx",
        "lib/utils.js",
    ]
    for rel_path in files:
        file_path = tmp_path / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(f"// {rel_path}\n")
    return tmp_path


@pytest.fixture
def resolver(project: Path) -> PathResolver:
    return PathResolver(project)


class TestResolveRelativePaths:
    """Tests for resolving ./ and ../ specifiers."""

    def test_same_directory(self, project: Path, resolver: PathResolver) -> None:
        """Test resolving a sibling file."""
        from_file = project / "src/services/UserService.ts"

        resolved = resolver.resolve(from_file, "./AuthService")

        assert resolved == str(project / "src/services/AuthService.tsx")

    def test_parent_directory(self, project: Path, resolver: PathResolver) -> None:
        """Test resolving a file in the parent's sibling directory."""
        from_file = project / "src/services/UserService.ts"

        resolved = resolver.resolve(from_file, "../models/User")

        assert resolved == str(project / "src/models/User.ts")

    def test_multiple_parent_levels(self, project: Path, resolver: PathResolver) -> None:
        """Test resolving across several ../ segments."""
        from_file = project / "src/services/UserService.ts"

        resolved = resolver.resolve(from_file, "../../lib/utils")

        assert resolved == str(project / "lib/utils.js")

    def test_resolve_import_path_alias(self, project: Path, resolver: PathResolver) -> None:
        """Test that resolve_import_path is the same operation as resolve."""
        from_file = project / "src/models/User.ts"

        assert resolver.resolve_import_path(from_file, "./Profile") == str(
            project / "src/models/Profile.ts"
        )

    def test_normalizes_redundant_segments(self, project: Path, resolver: PathResolver) -> None:
        """Test that ./ and ../ segments inside a specifier are normalized."""
        from_file = project / "src/services/UserService.ts"

        resolved = resolver.resolve(from_file, "./../models/./User")

        assert resolved == str(project / "src/models/User.ts")

    def test_consecutive_resolutions(self, project: Path, resolver: PathResolver) -> None:
        """Test that one resolver handles several lookups independently."""
        from_file = project / "src/services/UserService.ts"

        assert resolver.resolve(from_file, "../models/User") == str(project / "src/models/User.ts")
        assert resolver.resolve(from_file, "../models/Profile") == str(
            project / "src/models/Profile.ts"
        )


class TestExtensionInference:
    """Tests for extension and index-file fallback."""

    def test_prefers_ts(self, project: Path, resolver: PathResolver) -> None:
        """Test that .ts wins over later extensions."""
        (project / "src/models/User.js").write_text("// js twin\n")
        from_file = project / "src/services/UserService.ts"

        resolved = resolver.resolve(from_file, "../models/User")

        assert resolved == str(project / "src/models/User.ts")

    def test_falls_back_to_tsx(self, project: Path, resolver: PathResolver) -> None:
        """Test .tsx when no .ts file exists."""
        from_file = project / "src/services/UserService.ts"

        assert resolver.resolve(from_file, "./AuthService") == str(
            project / "src/services/AuthService.tsx"
        )

    def test_jsx_and_js(self, project: Path, resolver: PathResolver) -> None:
        """Test .jsx and .js files."""
        from_file = project / "src/services/UserService.ts"

        assert resolver.resolve(from_file, "../App") == str(project / "src/App.jsx")
        assert resolver.resolve(from_file, "../../lib/utils") == str(project / "lib/utils.js")

    def test_explicit_extension(self, project: Path, resolver: PathResolver) -> None:
        """Test that a specifier with an extension is used as is."""
        from_file = project / "src/services/UserService.ts"

        resolved = resolver.resolve(from_file, "../models/User.ts")

        assert resolved == str(project / "src/models/User.ts")

    def test_directory_resolves_to_index(self, project: Path, resolver: PathResolver) -> None:
        """Test that a directory specifier resolves to its index file."""
        from_file = project / "src/services/UserService.ts"

        assert resolver.resolve(from_file, "../models") == str(project / "src/models/index.ts")
        assert resolver.resolve(from_file, "../components/common") == str(
            project / "src/components/common/index.ts"
        )

    def test_file_preferred_over_index(self, project: Path, resolver: PathResolver) -> None:
        """Test that an explicit file beats the directory's index file."""
        from_file = project / "src/services/UserService.ts"

        resolved = resolver.resolve(from_file, "../models/User")

        assert resolved == str(project / "src/models/User.ts")

    def test_custom_extensions(self, project: Path) -> None:
        """Test a resolver restricted to a custom extension list."""
        resolver = PathResolver(project, extensions=[".js"])
        from_file = project / "src/services/UserService.ts"

        assert resolver.resolve(from_file, "../models/User") is None
        assert resolver.resolve(from_file, "../../lib/utils") == str(project / "lib/utils.js")


class TestUnresolvable:
    """Tests for specifiers that resolve to None."""

    def test_missing_file(self, project: Path, resolver: PathResolver) -> None:
        from_file = project / "src/services/UserService.ts"

        assert resolver.resolve(from_file, "./DoesNotExist") is None

    def test_outside_project(self, project: Path, resolver: PathResolver) -> None:
        from_file = project / "src/services/UserService.ts"

        assert resolver.resolve(from_file, "../../../etc/passwd") is None

    def test_bare_package(self, project: Path, resolver: PathResolver) -> None:
        from_file = project / "src/services/UserService.ts"

        assert resolver.resolve(from_file, "react") is None

    def test_path_alias(self, project: Path, resolver: PathResolver) -> None:
        from_file = project / "src/services/UserService.ts"

        assert resolver.resolve(from_file, "@/models/User") is None

    def test_empty_specifier(self, project: Path, resolver: PathResolver) -> None:
        from_file = project / "src/services/UserService.ts"

        assert resolver.resolve(from_file, "") is None
        assert resolver.resolve(from_file, "   ") is None

    def test_missing_from_file(self, project: Path, resolver: PathResolver) -> None:
        assert resolver.resolve(project / "src/NonExistent.ts", "./models/User") is None


class TestIsRelativePath:
    """Tests for the relative specifier predicate."""

    @pytest.mark.parametrize("specifier", ["./User", "../models/User", "./"])
    def test_relative(self, specifier: str) -> None:
        assert PathResolver.is_relative_path(specifier) is True

    @pytest.mark.parametrize("specifier", ["react", "@/models/User", "~/utils", "/abs/path", ""])
    def test_not_relative(self, specifier: str) -> None:
        assert PathResolver.is_relative_path(specifier) is False


class TestIsWithinProject:
    """Tests for the project boundary check."""

    def test_inside(self, project: Path, resolver: PathResolver) -> None:
        assert resolver.is_within_project(project / "src/models/User.ts") is True

    def test_outside(self, resolver: PathResolver) -> None:
        assert resolver.is_within_project("/etc/passwd") is False

    def test_escaping_with_parent_segments(self, project: Path, resolver: PathResolver) -> None:
        assert resolver.is_within_project(os.path.join(str(project), "..", "outside.ts")) is False

    def test_non_existent_path_inside(self, project: Path, resolver: PathResolver) -> None:
        """Test a path that does not exist yet but lies inside the root."""
        assert resolver.is_within_project(project / "src/../models/User.ts") is True

    def test_sibling_with_common_prefix(self, project: Path) -> None:
        """Test that /root-other is not treated as inside /root."""
        resolver = PathResolver(project)
        sibling = Path(str(project) + "-other") / "file.ts"

        assert resolver.is_within_project(sibling) is False

    def test_symlink_escaping_project(self, project: Path, tmp_path_factory) -> None:
        """Test that a symlink pointing outside the project is rejected."""
        outside = tmp_path_factory.mktemp("outside")
        (outside / "Secret.ts").write_text("export class Secret {}\n")
        link = project / "src/linked"
        try:
            link.symlink_to(outside, target_is_directory=True)
        except OSError:
            pytest.skip("symlinks not supported")

        resolver = PathResolver(project)

        assert resolver.is_within_project(link / "Secret.ts") is False
        assert resolver.resolve(project / "src/App.jsx", "./linked/Secret") is None
