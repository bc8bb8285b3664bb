import os
import tarfile

import pytest
import yaml

from chart_repo.core.errors import LoadError, SaveError
from chart_repo.services.packager import load_chart_dir, package_chart, save_chart_archive

from conftest import write_chart


def _members(archive):
    with tarfile.open(archive, "r:gz") as tar:
        return sorted(m.name for m in tar.getmembers())


def _packaged_chart_yaml(archive, name):
    with tarfile.open(archive, "r:gz") as tar:
        return yaml.safe_load(tar.extractfile(f"{name}/Chart.yaml").read())


class TestLoadChartDir:
    def test_loads_metadata_and_files(self, chart_dir):
        src = write_chart(chart_dir, "web", "1.4.0", description="A web app")
        chart = load_chart_dir(src)

        assert chart.metadata.name == "web"
        assert chart.metadata.version == "1.4.0"
        assert chart.metadata.description == "A web app"
        assert sorted(chart.files) == ["templates/deployment.yaml", "values.yaml"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(LoadError):
            load_chart_dir(tmp_path / "nope")

    def test_missing_chart_yaml(self, chart_dir):
        src = chart_dir / "empty"
        src.mkdir()
        with pytest.raises(LoadError, match="Chart.yaml"):
            load_chart_dir(src)

    def test_unparsable_chart_yaml(self, chart_dir):
        src = chart_dir / "broken"
        src.mkdir()
        (src / "Chart.yaml").write_text("name: [unclosed\n", encoding="utf-8")
        with pytest.raises(LoadError):
            load_chart_dir(src)

    def test_missing_required_field(self, chart_dir):
        src = chart_dir / "noname"
        src.mkdir()
        (src / "Chart.yaml").write_text("apiVersion: v2\nversion: 1.0.0\n", encoding="utf-8")
        with pytest.raises(LoadError):
            load_chart_dir(src)

    def test_missing_api_version_defaults_to_v1(self, chart_dir):
        src = chart_dir / "old"
        src.mkdir()
        (src / "Chart.yaml").write_text("name: old\nversion: 1.0.0\n", encoding="utf-8")

        chart = load_chart_dir(src)

        assert chart.metadata.api_version == "v1"

    def test_name_with_path_separator(self, chart_dir):
        src = chart_dir / "evil"
        src.mkdir()
        (src / "Chart.yaml").write_text("apiVersion: v2\nname: ../evil\nversion: 1.0.0\n", encoding="utf-8")
        with pytest.raises(LoadError):
            load_chart_dir(src)

    def test_helmignore_patterns(self, chart_dir):
        src = write_chart(
            chart_dir,
            "app",
            files={
                ".helmignore": "# comment\n*.bak\nci/\n!keep.bak\n",
                "notes.bak": "old",
                "keep.bak": "kept",
                "ci/values.yaml": "x: 1\n",
                "docs/ci": "a file named like the ignored dir",
            },
        )
        chart = load_chart_dir(src)

        assert "notes.bak" not in chart.files
        assert "keep.bak" in chart.files
        assert "ci/values.yaml" not in chart.files
        assert "docs/ci" in chart.files
        assert ".helmignore" in chart.files


    def test_hidden_template_files_are_always_ignored(self, chart_dir):
        src = write_chart(
            chart_dir,
            "app",
            files={
                "templates/.swp": "editor swap",
                "templates/.hidden.yaml": "kind: Secret\n",
                "templates/service.yaml": "kind: Service\n",
            },
        )
        chart = load_chart_dir(src)

        assert "templates/.swp" not in chart.files
        assert "templates/.hidden.yaml" not in chart.files
        assert "templates/service.yaml" in chart.files

    def test_hidden_template_files_ignored_alongside_helmignore(self, chart_dir):
        src = write_chart(
            chart_dir,
            "app",
            files={".helmignore": "*.bak\n", "templates/.env": "x", "values.bak": "y"},
        )
        chart = load_chart_dir(src)

        assert "templates/.env" not in chart.files
        assert "values.bak" not in chart.files


class TestPackageChart:
    def test_archive_is_named_and_stamped_with_configured_version(self, chart_dir, repo_dir):
        src = write_chart(chart_dir, "web", "0.0.1", appVersion="3.1")
        archive = package_chart(src, repo_dir, "2.5.0")

        assert archive == repo_dir / "web-2.5.0.tgz"
        chart_yaml = _packaged_chart_yaml(archive, "web")
        assert chart_yaml["version"] == "2.5.0"
        assert chart_yaml["appVersion"] == "3.1"

    def test_archive_members_are_rooted_under_chart_name(self, chart_dir, repo_dir):
        src = write_chart(chart_dir, "web")
        archive = package_chart(src, repo_dir, "1.0.0")

        assert _members(archive) == [
            "web/Chart.yaml",
            "web/templates/deployment.yaml",
            "web/values.yaml",
        ]

    def test_creates_output_directory(self, chart_dir, tmp_path):
        src = write_chart(chart_dir, "web")
        dest = tmp_path / "nested" / "out"
        package_chart(src, dest, "1.0.0")
        assert (dest / "web-1.0.0.tgz").is_file()

    def test_overwrites_existing_archive(self, chart_dir, repo_dir):
        repo_dir.mkdir()
        (repo_dir / "web-1.0.0.tgz").write_bytes(b"stale")
        src = write_chart(chart_dir, "web")

        archive = package_chart(src, repo_dir, "1.0.0")

        assert tarfile.is_tarfile(archive)
        assert sorted(p.name for p in repo_dir.iterdir()) == ["web-1.0.0.tgz"]

    def test_load_failure_is_load_error(self, chart_dir, repo_dir):
        src = chart_dir / "empty"
        src.mkdir()
        with pytest.raises(LoadError, match="failed to load"):
            package_chart(src, repo_dir, "1.0.0")
        assert not repo_dir.exists()

    def test_output_path_is_a_file(self, chart_dir, tmp_path):
        src = write_chart(chart_dir, "web")
        dest = tmp_path / "out"
        dest.write_text("not a directory", encoding="utf-8")
        with pytest.raises(SaveError, match="failed to save"):
            package_chart(src, dest, "1.0.0")

    def test_target_collides_with_directory(self, chart_dir, repo_dir):
        (repo_dir / "web-1.0.0.tgz").mkdir(parents=True)
        src = write_chart(chart_dir, "web")
        with pytest.raises(SaveError):
            package_chart(src, repo_dir, "1.0.0")

    @pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs POSIX permissions as non-root")
    def test_unwritable_output_leaves_no_temp_file(self, chart_dir, repo_dir):
        repo_dir.mkdir()
        src = write_chart(chart_dir, "web")
        chart = load_chart_dir(src)
        repo_dir.chmod(0o500)
        try:
            with pytest.raises(SaveError):
                save_chart_archive(chart, repo_dir)
        finally:
            repo_dir.chmod(0o700)
        assert list(repo_dir.iterdir()) == []
