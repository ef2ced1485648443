from __future__ import annotations

import zipfile

from conftest import write_file, write_nupkg
from debugify.artifacts.package import (
    delete_symbols_packages,
    extract_package,
    find_symbols_package,
    package_entries,
    symbols_package_names,
)
from debugify.project.types import ProjectDescriptor


def _nupkg(path):
    return write_nupkg(
        path,
        {
            "lib/net6.0/Acme.Lib.dll": b"dll",
            "lib/net6.0/Acme.Lib.pdb": b"pdb",
            "src/Acme.Lib/Thing.cs": b"class Thing {}",
            "Acme.Lib.nuspec": b"<package/>",
            "_rels/.rels": b"",
            "[Content_Types].xml": b"",
        },
    )


def test_only_lib_and_src_entries_are_recognized(tmp_path):
    pkg = _nupkg(tmp_path / "Acme.Lib.1.0.0.symbols.nupkg")
    assert package_entries(pkg) == ["lib/net6.0/Acme.Lib.dll", "lib/net6.0/Acme.Lib.pdb", "src/Acme.Lib/Thing.cs"]


def test_extract_package(tmp_path):
    pkg = _nupkg(tmp_path / "Acme.Lib.1.0.0.symbols.nupkg")
    dest = tmp_path / "staging"

    extracted = extract_package(pkg, dest)

    assert len(extracted) == 3
    assert (dest / "lib" / "net6.0" / "Acme.Lib.dll").read_bytes() == b"dll"
    assert (dest / "src" / "Acme.Lib" / "Thing.cs").is_file()
    assert not (dest / "Acme.Lib.nuspec").exists()


def test_extract_skips_entries_escaping_the_destination(tmp_path):
    pkg = tmp_path / "evil.symbols.nupkg"
    with zipfile.ZipFile(pkg, "w") as zf:
        zf.writestr("lib/../../escaped.dll", b"x")
        zf.writestr("lib/ok.dll", b"ok")
    dest = tmp_path / "staging"

    extracted = extract_package(pkg, dest)

    assert extracted == [(dest / "lib" / "ok.dll").resolve()]
    assert not (tmp_path / "escaped.dll").exists()


def test_find_symbols_package_by_long_or_short_version(tmp_path):
    d = ProjectDescriptor("Acme.Lib", None, "1.2.0.0", tmp_path / "Lib.csproj")
    assert symbols_package_names(d) == ["Acme.Lib.1.2.0.0.symbols.nupkg", "Acme.Lib.1.2.0.symbols.nupkg"]

    write_file(tmp_path / "bin" / "Debug" / "Other.1.2.0.symbols.nupkg")
    assert find_symbols_package(tmp_path, d) is None

    short = write_file(tmp_path / "bin" / "Debug" / "acme.lib.1.2.0.symbols.nupkg")
    assert find_symbols_package(tmp_path, d) == short


def test_delete_symbols_packages(tmp_path):
    write_file(tmp_path / "a" / "bin" / "A.1.0.0.symbols.nupkg")
    write_file(tmp_path / "b" / "B.1.0.0.symbols.nupkg")
    keep = write_file(tmp_path / "b" / "B.1.0.0.nupkg")

    assert delete_symbols_packages(tmp_path) == 2
    assert list(tmp_path.rglob("*.symbols.nupkg")) == []
    assert keep.exists()
