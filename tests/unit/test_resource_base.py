from __future__ import annotations

import pytest

from seff.engine.errors import (
    DependencyCycleError,
    DeserializationError,
    InvalidIdentifierError,
    MissingResourceError,
    ResourceRelationError,
)
from seff.engine.resource_graph import ResourceGraph
from seff.resources.base import (
    ResourceRecord,
    is_uid,
    make_uid,
    parse_uid,
    validate_crn,
    validate_name,
    validate_tag,
)

# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("name", ["a", "_x", "my-table", "T1_2-b"])
def test_valid_names(name: str) -> None:
    assert validate_name(name) == name


@pytest.mark.parametrize("name", ["", "1abc", "-x", "has space", "dot.name", "ü", None, 3])
def test_invalid_names(name: object) -> None:
    with pytest.raises(InvalidIdentifierError, match="resource name"):
        validate_name(name)


def test_invalid_identifier_is_value_error() -> None:
    with pytest.raises(ValueError):
        validate_tag("bad tag")


@pytest.mark.parametrize("crn", ["arn:aws:s3:::bucket", "file:///tmp/x", "x"])
def test_valid_crns(crn: str) -> None:
    assert validate_crn(crn) == crn


@pytest.mark.parametrize("crn", ["", "with space", "tab\there", "trailing\n"])
def test_invalid_crns(crn: str) -> None:
    with pytest.raises(InvalidIdentifierError, match="cloud resource name"):
        validate_crn(crn)


def test_uid_format() -> None:
    uid = make_uid("Table", "orders-2")
    assert uid == "uid:Table:orders-2"
    assert is_uid(uid)
    assert parse_uid(uid) == ("Table", "orders-2")


@pytest.mark.parametrize(
    "value", ["uid:Table", "uid:1Table:x", "uid:Table:x y", "Table:x", "uid:Ta-ble:x", 42]
)
def test_malformed_uids(value: object) -> None:
    assert not is_uid(value)


def test_make_uid_rejects_bad_type() -> None:
    with pytest.raises(InvalidIdentifierError, match="resource type"):
        make_uid("Bad-Type", "x")


# ---------------------------------------------------------------------------
# Construction and relations
# ---------------------------------------------------------------------------


def test_new_resource_is_unrealized(fake_cls) -> None:
    res = fake_cls("a")
    assert res.crn is None
    assert res.parent is None
    assert dict(res.dependencies) == {}
    assert res.uid == "uid:Fake:a"


def test_constructor_validates_name_and_crn(fake_cls) -> None:
    with pytest.raises(InvalidIdentifierError):
        fake_cls("not valid")
    with pytest.raises(InvalidIdentifierError):
        fake_cls("ok", "has space")


def test_set_crn_validates(fake_cls) -> None:
    res = fake_cls("a")
    res.set_crn("crn:1")
    assert res.crn == "crn:1"
    with pytest.raises(InvalidIdentifierError):
        res.set_crn("")


def test_parent_set_at_most_once(fake_cls) -> None:
    p1, p2, child = fake_cls("p1"), fake_cls("p2"), fake_cls("c")
    child.set_parent(p1)
    with pytest.raises(ResourceRelationError, match="Parent already set"):
        child.set_parent(p2)
    assert child.parent is p1


def test_duplicate_dependency_tag(fake_cls) -> None:
    a, b, c = fake_cls("a"), fake_cls("b"), fake_cls("c")
    c.add_dependency("db", a)
    with pytest.raises(ResourceRelationError, match="Duplicate dependency"):
        c.add_dependency("db", b)


def test_invalid_dependency_tag(fake_cls) -> None:
    with pytest.raises(InvalidIdentifierError, match="tag"):
        fake_cls("a").add_dependency("not a tag", fake_cls("b"))


def test_dependencies_are_read_only(fake_cls) -> None:
    a = fake_cls("a")
    with pytest.raises(TypeError):
        a.dependencies["x"] = fake_cls("b")  # type: ignore[index]


def test_cycles_are_refused(fake_cls) -> None:
    a, b, c = fake_cls("a"), fake_cls("b"), fake_cls("c")
    b.add_dependency("a", a)
    c.set_parent(b)
    with pytest.raises(DependencyCycleError):
        a.add_dependency("c", c)
    with pytest.raises(DependencyCycleError):
        a.set_parent(c)
    with pytest.raises(DependencyCycleError):
        a.add_dependency("self", a)


def test_ancestors_and_root(fake_cls) -> None:
    top, mid, leaf = fake_cls("top"), fake_cls("mid"), fake_cls("leaf")
    mid.set_parent(top)
    leaf.set_parent(mid)
    assert [r.name for r in leaf.ancestors()] == ["mid", "top"]
    assert leaf.root() is top
    assert top.root() is top


def test_has_been_removed_clears_crn(fake_cls) -> None:
    res = fake_cls("a", "crn:a")
    res.has_been_removed()
    assert res.crn is None


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def test_serialize_record_shape(fake_cls, other_cls) -> None:
    vpc = fake_cls("vpc", "crn:vpc", {"cidr": "10.0.0.0/16"})
    db = other_cls("db", None, vpc)
    db.add_dependency("vpc", vpc)
    db.set_parent(vpc)

    assert vpc.serialize() == {
        "name": "vpc",
        "crn": "crn:vpc",
        "args": [{"cidr": "10.0.0.0/16"}],
        "deps": {},
    }
    assert db.serialize() == {
        "name": "db",
        "args": ["uid:Fake:vpc"],
        "deps": {"vpc": "uid:Fake:vpc"},
        "parent": "uid:Fake:vpc",
    }


def test_record_model_defaults() -> None:
    record = ResourceRecord.model_validate({"name": "a", "args": []})
    assert record.crn is None
    assert record.deps == {}
    assert record.parent is None


def test_deserialize_resolves_uids(fake_cls, other_cls, registry) -> None:
    pool = ResourceGraph()
    vpc = pool.add(fake_cls("vpc", "crn:vpc"))
    data = {
        "name": "db",
        "crn": "crn:db",
        "args": ["uid:Fake:vpc"],
        "deps": {"net": "uid:Fake:vpc"},
        "parent": "uid:Fake:vpc",
    }
    db = fake_cls.deserialize("uid:Other:db", data, pool, registry)

    assert isinstance(db, other_cls)
    assert db.crn == "crn:db"
    assert db.target is vpc
    assert db.parent is vpc
    assert db.dependencies["net"] is vpc


@pytest.mark.parametrize(
    ("uid", "data", "match"),
    [
        (None, {"name": "a", "args": []}, "Invalid resource identifier"),
        ("Fake:a", {"name": "a", "args": []}, "Malformed identifier"),
        ("uid:Nope:a", {"name": "a", "args": []}, "Resource class not found"),
        ("uid:Fake:a", {"name": "b", "args": []}, "mismatches resource name"),
        ("uid:Fake:a", {"name": "a"}, "Invalid serialized resource"),
        ("uid:Fake:a", "not a record", "Invalid serialized resource"),
        ("uid:Fake:a", {"name": "a", "args": [], "parent": "uid:Fake:ghost"}, "Cannot restore"),
        ("uid:Fake:a", {"name": "a", "args": [], "deps": {"x": "garbage"}}, "Cannot restore"),
        ("uid:Fake:a", {"name": "a", "crn": "bad crn", "args": []}, "Cannot restore"),
        ("uid:Fake:a", {"name": "a", "args": [1, 2, 3]}, "Cannot restore"),
    ],
)
def test_deserialize_errors(fake_cls, registry, uid, data, match) -> None:
    with pytest.raises(DeserializationError, match=match):
        fake_cls.deserialize(uid, data, ResourceGraph(), registry)


def test_deserialize_dangling_reference_chains_cause(fake_cls, registry) -> None:
    data = {"name": "a", "args": [], "deps": {"x": "uid:Fake:ghost"}}
    with pytest.raises(DeserializationError) as exc_info:
        fake_cls.deserialize("uid:Fake:a", data, ResourceGraph(), registry)
    assert isinstance(exc_info.value.__cause__, MissingResourceError)
