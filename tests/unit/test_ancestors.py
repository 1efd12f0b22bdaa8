"""Unit tests for AncestorPath equality, immutability and rendering."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from apimextract.graph import kinds
from apimextract.models.ancestors import AncestorPath
from apimextract.models.resources import ResourceName

_KINDS = [kinds.API, kinds.API_OPERATION, kinds.PRODUCT, kinds.GATEWAY]

_names = st.text(alphabet="abcdefghij-", min_size=1, max_size=6).filter(lambda s: s.strip("-"))
_pairs = st.lists(st.tuples(st.sampled_from(_KINDS), _names), max_size=4)


def _path(pairs: list) -> AncestorPath:
    path = AncestorPath.root()
    for kind, name in pairs:
        path = path.append(kind, ResourceName(name))
    return path


_ECHO_GET = _path([(kinds.API, "echo"), (kinds.API_OPERATION, "get")])

# ---------------------------------------------------------------------------
# Equality and hashing
# ---------------------------------------------------------------------------


class TestEquality:
    def test_root_is_empty(self) -> None:
        """The root path is empty, falsy and equal to a fresh empty path."""
        assert len(AncestorPath.root()) == 0
        assert not AncestorPath.root()
        assert AncestorPath.root() == AncestorPath()

    def test_equal_sequences_are_equal_keys(self) -> None:
        """Paths differing only in name case hit the same dict entry."""
        a = AncestorPath.root().append(kinds.API, ResourceName("echo"))
        b = AncestorPath.root().append(kinds.API, ResourceName("ECHO"))
        assert a == b
        assert {a: 1}[b] == 1

    def test_order_matters(self) -> None:
        """The same pairs in a different order form a different path."""
        a = _path([(kinds.API, "x"), (kinds.API_OPERATION, "y")])
        b = _path([(kinds.API_OPERATION, "y"), (kinds.API, "x")])
        assert a != b

    def test_kind_identity_matters(self) -> None:
        """Kinds with the same labels but different identity do not compare equal."""
        a = AncestorPath.root().append(kinds.DIAGNOSTIC, ResourceName("d"))
        b = AncestorPath.root().append(kinds.API_DIAGNOSTIC, ResourceName("d"))
        assert a != b

    @given(_pairs, _pairs)
    def test_no_aliasing_between_different_sequences(self, left: list, right: list) -> None:
        """Two paths are equal exactly when their pair sequences are."""
        same = len(left) == len(right) and all(
            lk is rk and ResourceName(ln) == ResourceName(rn) for (lk, ln), (rk, rn) in zip(left, right)
        )
        assert (_path(left) == _path(right)) is same
        if same:
            assert hash(_path(left)) == hash(_path(right))


# ---------------------------------------------------------------------------
# Immutability
# ---------------------------------------------------------------------------


class TestImmutability:
    @given(_pairs, st.sampled_from(_KINDS), _names)
    def test_append_returns_new_path(self, pairs: list, kind: object, name: str) -> None:
        """append leaves the original untouched and the new path's parent is the original."""
        path = _path(pairs)
        extended = path.append(kind, ResourceName(name))  # type: ignore[arg-type]
        assert len(path) == len(pairs)
        assert len(extended) == len(pairs) + 1
        assert extended.parent == path

    def test_prefixes_run_outermost_first(self) -> None:
        """prefixes yields every non-empty prefix, ending with the path itself."""
        assert list(_ECHO_GET.prefixes()) == [_ECHO_GET.parent, _ECHO_GET]

    def test_root_has_no_prefixes(self) -> None:
        assert list(AncestorPath.root().prefixes()) == []

    def test_root_parent_is_root(self) -> None:
        """The root's parent is the root."""
        assert AncestorPath.root().parent == AncestorPath.root()

    def test_last(self) -> None:
        """last is the innermost ancestor, None at the root."""
        assert _ECHO_GET.last is not None
        assert _ECHO_GET.last.name == ResourceName("get")
        assert AncestorPath.root().last is None


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRendering:
    def test_log_string_innermost_first(self) -> None:
        """Log rendering reads from the innermost ancestor outwards."""
        assert _ECHO_GET.to_log_string() == " in operation 'get' in api 'echo'"

    def test_root_log_string_is_empty(self) -> None:
        assert AncestorPath.root().to_log_string() == ""

    def test_str(self) -> None:
        """str() renders plural/name segments, as bound into log context."""
        assert str(_ECHO_GET) == "apis/echo/operations/get"
