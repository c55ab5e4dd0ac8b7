"""Tests for MibTreeService: discovery, one-shot loading and queries."""

import os
import threading
import time
from typing import Any, List

import pytest

from conftest import FakeParser, parsed
from core.errors import (
    DirectoryNotFound,
    DuplicateOid,
    MalformedOid,
    MibServiceError,
    NodeNotFound,
    TreeEmpty,
)
from services.mib_service import MibTreeService


def root_oids(roots: List[Any]) -> List[str]:
    return [r.oid for r in roots]


def test_discover_mib_files(make_service: Any, mib_dir: Any) -> None:
    service = make_service()

    files = service.discover_mib_files()

    assert list(files) == ["SYSTEM-MIB", "VENDOR-MIB"]
    assert files["VENDOR-MIB"] == os.path.join(str(mib_dir), "vendor", "VENDOR-MIB.mib")
    assert service.parser.search_paths == [str(mib_dir), os.path.join(str(mib_dir), "vendor")]


def test_discover_accepts_extensionless_and_skips_hidden(make_service: Any, mib_dir: Any) -> None:
    (mib_dir / "IF-MIB").write_text("IF-MIB DEFINITIONS ::= BEGIN END")
    (mib_dir / ".hidden.txt").write_text("")

    files = make_service().discover_mib_files()

    assert "IF-MIB" in files
    assert ".hidden" not in files


def test_discover_duplicate_module_name_keeps_first(make_service: Any, mib_dir: Any) -> None:
    (mib_dir / "vendor" / "SYSTEM-MIB.my").write_text("")

    files = make_service().discover_mib_files()

    assert files["SYSTEM-MIB"] == os.path.join(str(mib_dir), "SYSTEM-MIB.txt")


def test_missing_directory(make_service: Any, tmp_path: Any) -> None:
    service = make_service(mib_dir=tmp_path / "nope")

    with pytest.raises(DirectoryNotFound):
        service.load_and_build()

    # the failure is recorded, not retried
    with pytest.raises(DirectoryNotFound):
        service.load_and_build()
    assert service.parser.init_calls == 1
    assert service.get_status()["ready"] is False


def test_load_and_build(make_service: Any) -> None:
    service = make_service()

    roots = service.load_and_build()

    assert service.parser.load_calls == ["SYSTEM-MIB", "VENDOR-MIB"]
    assert root_oids(roots) == ["1", "1.3.6.1.2.1.1", "1.3.6.1.4.1.9999"]
    assert root_oids(roots[0].children) == ["1.3"]
    assert root_oids(roots[1].children) == [
        "1.3.6.1.2.1.1.1",
        "1.3.6.1.2.1.1.2",
        "1.3.6.1.2.1.1.10",
    ]


def test_nodes_without_oid_are_dropped(make_service: Any) -> None:
    service = make_service()
    service.load_and_build()

    names = [n.name for n in service.collect_nodes()]

    assert "DisplayString" not in names
    assert service.get_status()["nodes"] == 8


def test_load_runs_once(make_service: Any) -> None:
    service = make_service()

    first = service.load_and_build()
    second = service.load_and_build()

    assert first is second
    assert service.parser.init_calls == 1
    assert service.parser.load_calls == ["SYSTEM-MIB", "VENDOR-MIB"]


def test_concurrent_callers_share_one_load(make_service: Any, sample_modules: Any) -> None:
    class SlowParser(FakeParser):
        def load_module(self, name: str) -> None:
            time.sleep(0.05)
            super().load_module(name)

    service = make_service(parser=SlowParser(modules=sample_modules))
    results: List[Any] = []

    threads = [threading.Thread(target=lambda: results.append(service.load_and_build()))
               for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 8
    assert all(r is results[0] for r in results)
    assert service.parser.init_calls == 1
    assert service.parser.load_calls == ["SYSTEM-MIB", "VENDOR-MIB"]


def test_bad_module_is_skipped(make_service: Any, sample_modules: Any) -> None:
    parser = FakeParser(modules=sample_modules, failing={"VENDOR-MIB": "Cannot find module VENDOR-SMI"})
    service = make_service(parser=parser)

    roots = service.load_and_build()

    assert root_oids(roots) == ["1", "1.3.6.1.2.1.1"]
    status = service.get_status()
    assert status["loaded"] == 1
    assert status["failed"] == 1
    assert status["errors"][0]["name"] == "VENDOR-MIB"
    assert status["errors"][0]["status"] == "missing_deps"
    assert status["errors"][0]["file"] == "VENDOR-MIB.mib"


def test_dependency_modules_contribute_nodes(make_service: Any, sample_modules: Any) -> None:
    modules = dict(sample_modules)
    modules["SNMPv2-SMI"] = [parsed("1.3.6", "dod", module="SNMPv2-SMI"),
                             parsed("1.3.6.1", "internet", module="SNMPv2-SMI")]
    service = make_service(parser=FakeParser(modules=modules, dependencies=["SNMPv2-SMI"]))

    roots = service.load_and_build()

    assert root_oids(roots) == ["1", "1.3.6.1.2.1.1", "1.3.6.1.4.1.9999"]
    org = roots[0].children[0]
    assert root_oids(org.children) == ["1.3.6"]


def test_empty_directory_gives_empty_forest(tmp_path: Any) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()
    service = MibTreeService(mib_dir=empty, parser=FakeParser(), duplicate_policy="overwrite")

    assert service.load_and_build() == []
    with pytest.raises(TreeEmpty):
        service.get_tree()


def test_duplicate_error_policy_fails_load(make_service: Any, sample_modules: Any) -> None:
    modules = dict(sample_modules)
    modules["VENDOR-MIB"] = modules["VENDOR-MIB"] + [parsed("1.3", "org", module="VENDOR-MIB")]
    service = make_service(parser=FakeParser(modules=modules), duplicate_policy="error")

    with pytest.raises(DuplicateOid):
        service.load_and_build()
    with pytest.raises(DuplicateOid):
        service.get_tree()


def test_unexpected_parser_error_is_recorded(make_service: Any, mocker: Any) -> None:
    service = make_service()
    mocker.patch.object(service.parser, "list_loaded_modules", side_effect=KeyError("boom"))

    with pytest.raises(MibServiceError) as exc:
        service.load_and_build()

    assert "boom" in str(exc.value)
    assert service.get_status()["error"] is not None


def test_get_tree_payload(make_service: Any) -> None:
    service = make_service()

    tree = service.get_tree()

    assert [r["oid"] for r in tree] == ["1", "1.3.6.1.2.1.1", "1.3.6.1.4.1.9999"]
    system = tree[1]
    assert system["description"] == "The system group"
    assert [c["name"] for c in system["children"]] == ["sysDescr", "sysObjectID", "sysTen"]
    assert "children" not in system["children"][0]
    assert "nodeType" not in system["children"][0]
    assert service.get_tree() is tree


def test_get_node(make_service: Any) -> None:
    service = make_service()

    data = service.get_node("1.3.6.1.4.1.9999.1")

    assert data == {
        "name": "vendorStatus",
        "oid": "1.3.6.1.4.1.9999.1",
        "nodeType": "Integer32",
        "decl": "OBJECT-TYPE",
        "units": "state",
        "enumValues": [{"value": 1, "label": "up"}, {"value": 2, "label": "down"}],
    }
    assert service.parser.lookups == [(1, 3, 6, 1, 4, 1, 9999, 1)]


def test_get_node_leading_dot(make_service: Any) -> None:
    assert make_service().get_node(".1.3.6.1.2.1.1.1")["name"] == "sysDescr"


def test_get_node_not_found(make_service: Any) -> None:
    with pytest.raises(NodeNotFound):
        make_service().get_node("1.3.6.1.2.1.99")


@pytest.mark.parametrize("oid", ["", "abc", "1..2"])
def test_get_node_malformed(make_service: Any, oid: str) -> None:
    service = make_service()

    with pytest.raises(MalformedOid):
        service.get_node(oid)

    assert service.parser.lookups == []


def test_list_mib_files(make_service: Any, tmp_path: Any) -> None:
    assert make_service().list_mib_files() == [
        "SYSTEM-MIB.txt",
        os.path.join("vendor", "VENDOR-MIB.mib"),
    ]
    assert make_service(mib_dir=tmp_path / "missing").list_mib_files() == []
