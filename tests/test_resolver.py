"""Tests for the dependency resolver."""

import pytest

from plus.modules.recipe import RecipeManager
from plus.modules.resolver import CycleDetected, DependencyResolver, ResolutionState


def resolver(**kw):
    return DependencyResolver(RecipeManager(), **kw)


class TestOrdering:

    def test_chain_is_post_order(self, declare):
        declare("A", required=["B"])
        declare("B", required=["C"])
        assert resolver().resolve("A") == ["C", "B", "A"]

    def test_package_without_declaration(self):
        assert resolver().resolve("lonely") == ["lonely"]

    def test_diamond_emits_each_package_once(self, declare):
        declare("app", required=["left", "right"])
        declare("left", required=["base"])
        declare("right", required=["base"])
        order = resolver().resolve("app")
        assert order == ["base", "left", "right", "app"]
        assert len(order) == len(set(order))

    def test_every_dependency_precedes_its_dependent(self, declare):
        graph = {
            "top": ["mid1", "mid2", "leaf3"],
            "mid1": ["leaf1", "leaf2"],
            "mid2": ["leaf2", "mid1"],
            "leaf2": ["leaf3"],
        }
        for name, deps in graph.items():
            declare(name, required=deps)
        order = resolver().resolve("top")
        pos = {name: i for i, name in enumerate(order)}
        for name, deps in graph.items():
            for dep in deps:
                assert pos[dep] < pos[name]
        assert set(order) == {"top", "mid1", "mid2", "leaf1", "leaf2", "leaf3"}


class TestCycles:

    def test_two_node_cycle_names_both(self, declare):
        declare("X", required=["Y"])
        declare("Y", required=["X"])
        with pytest.raises(CycleDetected) as exc:
            resolver().resolve("X")
        assert exc.value.package == "X"
        assert exc.value.parent == "Y"
        assert "X" in str(exc.value) and "Y" in str(exc.value)

    def test_self_dependency(self, declare):
        declare("ouroboros", required=["ouroboros"])
        with pytest.raises(CycleDetected):
            resolver().resolve("ouroboros")

    def test_cycle_deep_in_graph(self, declare):
        declare("root", required=["a"])
        declare("a", required=["b"])
        declare("b", required=["c"])
        declare("c", required=["a"])
        with pytest.raises(CycleDetected) as exc:
            resolver().resolve("root")
        assert exc.value.package == "a"
        assert exc.value.parent == "c"

    def test_cycle_through_recommended(self, declare):
        declare("p", recommended=["q"])
        declare("q", required=["p"])
        with pytest.raises(CycleDetected):
            resolver().resolve("p")
        assert resolver(skip_recommended=True).resolve("p") == ["p"]


class TestIdempotence:

    def test_shared_dependency_read_once(self, declare):
        declare("app", required=["left", "right"])
        declare("left", required=["base"])
        declare("right", required=["base"])
        recipes = RecipeManager()
        DependencyResolver(recipes).resolve("app")
        assert recipes.reads == 4

    def test_resolving_again_with_same_state_reads_nothing(self, declare):
        declare("A", required=["B"])
        recipes = RecipeManager()
        res = DependencyResolver(recipes)
        state = ResolutionState()
        res.resolve("A", state=state)
        reads = recipes.reads
        assert res.resolve("A", state=state) == ["B", "A"]
        assert recipes.reads == reads

    def test_top_level_calls_do_not_share_state(self, declare):
        declare("A", required=["B"])
        res = resolver()
        assert res.resolve("A") == ["B", "A"]
        assert res.resolve("A") == ["B", "A"]

    def test_resolve_many_shares_one_state(self, declare):
        declare("A", required=["C"])
        declare("B", required=["C"])
        assert resolver().resolve_many(["A", "B"]) == ["C", "A", "B"]


class TestDependencyKinds:

    def test_optional_is_never_followed(self, declare):
        declare("app", optional=["docs"])
        declare("docs", required=["X"])
        declare("X", required=["docs"])
        assert resolver().resolve("app") == ["app"]

    def test_recommended_resolved_by_default(self, declare):
        declare("app", required=["lib"], recommended=["extras"])
        declare("extras", required=["fonts"])
        assert resolver().resolve("app") == ["lib", "fonts", "extras", "app"]

    def test_recommended_skipped_on_request(self, declare):
        declare("app", required=["lib"], recommended=["extras"])
        assert resolver(skip_recommended=True).resolve("app") == ["lib", "app"]
        assert resolver().resolve("app", skip_recommended=True) == ["lib", "app"]

    def test_describe_and_find_missing(self, declare):
        declare("app", required=["lib"], optional=["docs"], recommended=["extras"])
        res = resolver()
        assert res.describe("app") == {
            "name": "app", "required": ["lib"], "optional": ["docs"], "recommended": ["extras"],
        }
        assert res.find_missing("app", installed={"lib"}) == ["extras", "app"]

    def test_find_missing_reuses_a_resolved_order(self, declare):
        declare("app", required=["lib"])
        recipes = RecipeManager()
        res = DependencyResolver(recipes)
        order = res.resolve("app")
        reads = recipes.reads
        assert res.find_missing("app", installed=set(), order=order) == ["lib", "app"]
        assert recipes.reads == reads
