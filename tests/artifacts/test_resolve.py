"""Unit tests for disk ordering."""

import itertools

import pytest

from vmdock.artifacts import DiskEntry, resolve


def _disks(*names):
    return [DiskEntry(name=n, size=i + 1) for i, n in enumerate(names)]


def _names(disks):
    return [d.name for d in disks]


def test_resolve_sorts_by_name_without_order():
    result = resolve(_disks("disk-b.img", "disk-c.img", "disk-a.img"))
    assert _names(result) == ["disk-a.img", "disk-b.img", "disk-c.img"]
    assert [d.slot for d in result] == [0, 1, 2]


def test_resolve_empty_order_is_treated_as_absent():
    assert _names(resolve(_disks("b.img", "a.img"), [])) == ["a.img", "b.img"]


def test_resolve_follows_caller_order():
    result = resolve(_disks("disk-b.img", "disk-a.img"), ["disk-a.img", "disk-b.img"])
    assert _names(result) == ["disk-a.img", "disk-b.img"]
    assert result[0].slot == 0
    assert result[1].slot == 1


def test_resolve_appends_unordered_in_detection_order():
    result = resolve(_disks("z.img", "m.img", "a.img", "k.img"), ["k.img"])
    assert _names(result) == ["k.img", "z.img", "m.img", "a.img"]


def test_resolve_ignores_unknown_and_duplicate_names():
    result = resolve(_disks("a.img", "b.img", "c.img"), ["nope.img", "c.img", "c.img", "a.img"])
    assert _names(result) == ["c.img", "a.img", "b.img"]


def test_resolve_duplicate_candidate_names_each_placed_once():
    disks = [DiskEntry("x/d.img", 1), DiskEntry("y/d.img", 2), DiskEntry("x/d.img", 3)]
    result = resolve(disks, ["x/d.img", "x/d.img"])
    assert [d.size for d in result] == [1, 3, 2]


def test_resolve_single_candidate_ignores_order():
    result = resolve(_disks("only.qcow2"), ["other.img", "only.qcow2"])
    assert _names(result) == ["only.qcow2"]
    assert result[0].slot == 0


def test_resolve_empty():
    assert resolve([], ["a.img"]) == []


def test_resolve_does_not_mutate_input():
    disks = _disks("b.img", "a.img")
    resolve(disks, ["a.img"])
    assert _names(disks) == ["b.img", "a.img"]
    assert all(d.slot is None for d in disks)


NAMES = ["a.img", "b.qcow2", "c.iso", "d.img"]


@pytest.mark.parametrize(
    "order",
    [list(p) for p in itertools.permutations(NAMES[:3])]
    + [["d.img", "missing.img"], ["c.iso", "c.iso"], ["x", "y"], NAMES[::-1]],
)
def test_resolve_is_a_permutation_honoring_order(order):
    candidates = _disks("d.img", "b.qcow2", "a.img", "c.iso")
    result = resolve(candidates, order)

    assert sorted(_names(result)) == sorted(NAMES)
    assert len(result) == len(candidates)
    assert [d.slot for d in result] == list(range(len(candidates)))

    named = list(dict.fromkeys(n for n in order if n in NAMES))
    assert _names(result)[: len(named)] == named
