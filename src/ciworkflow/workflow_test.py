# workflow_test.py
from __future__ import annotations

import asyncio

import pytest

from ciworkflow.errors import ExternalResolutionError, MissingInputError
from ciworkflow.join import get_src_for_join
from ciworkflow.model import Edge, Node, StagedWorkflow, WorkflowGraph
from ciworkflow.next_jobs import get_next_jobs
from ciworkflow.resolvers.base import StaticTriggerResolver
from ciworkflow.workflow import get_workflow


def build(config, resolver=None, pipeline_id=None):
    return asyncio.run(get_workflow(config, resolver, pipeline_id))


def names(graph: WorkflowGraph) -> list[str]:
    return [n.name for n in graph.nodes]


def test_requires_job_config():
    with pytest.raises(MissingInputError, match="No Job config provided"):
        build({"config": {}})
    with pytest.raises(MissingInputError):
        build(None)


def test_resolver_needs_pipeline_id():
    with pytest.raises(MissingInputError, match="pipeline id"):
        build({"jobs": {"main": {}}}, StaticTriggerResolver())


def test_jobs_without_requires_have_no_edges():
    graph = build({"jobs": {"main": {}, "test": {}, "lint": None}})

    assert names(graph) == ["~pr", "~commit", "main", "test", "lint"]
    assert graph.edges == ()


def test_detached_jobs():
    graph = build({"jobs": {"foo": {}, "bar": {"requires": ["foo"]}}})

    assert names(graph) == ["~pr", "~commit", "foo", "bar"]
    # a single AND requirement is still a join edge
    assert graph.edges == (Edge("foo", "bar", join=True),)


def test_dedupes_requires():
    graph = build({"jobs": {"foo": {"requires": ["A", "A", "A"]}, "A": {}}})

    assert names(graph) == ["~pr", "~commit", "foo", "A"]
    assert graph.edges == (Edge("A", "foo", join=True),)


def test_requires_as_string():
    graph = build({"jobs": {"main": {"requires": "~commit"}}})

    assert graph.edges == (Edge("~commit", "main"),)


def test_logical_or_requires():
    graph = build({
        "jobs": {
            "foo": {"requires": ["~commit"]},
            "A": {"requires": ["foo"]},
            "B": {"requires": ["foo"]},
            "C": {"requires": ["~A", "~B", "~sd@1234:foo"]},
        }
    })

    assert names(graph) == ["~pr", "~commit", "foo", "A", "B", "C", "~sd@1234:foo"]
    assert list(graph.edges) == [
        Edge("~commit", "foo"),
        Edge("foo", "A", join=True),
        Edge("foo", "B", join=True),
        Edge("A", "C"),
        Edge("B", "C"),
        Edge("~sd@1234:foo", "C"),
    ]
    # either upstream alone starts C
    assert get_next_jobs(graph, "A") == ["C"]
    assert get_next_jobs(graph, "B") == ["C"]


def test_logical_or_and_logical_and_requires():
    graph = build({
        "jobs": {
            "foo": {"requires": ["~commit"]},
            "A": {"requires": ["foo"]},
            "B": {"requires": ["foo"]},
            "C": {"requires": ["~A", "~B", "D", "E"]},
            "D": {},
            "E": {},
        }
    })

    assert names(graph) == ["~pr", "~commit", "foo", "A", "B", "C", "D", "E"]
    assert [e for e in graph.edges if e.dest == "C"] == [
        Edge("A", "C"),
        Edge("B", "C"),
        Edge("D", "C", join=True),
        Edge("E", "C", join=True),
    ]


def test_joins():
    graph = build({
        "jobs": {
            "foo": {},
            "bar": {"requires": ["foo"]},
            "baz": {"requires": ["foo"]},
            "bax": {"requires": ["bar", "baz"]},
        }
    })

    assert [e for e in graph.edges if e.dest == "bax"] == [
        Edge("bar", "bax", join=True),
        Edge("baz", "bax", join=True),
    ]
    assert get_src_for_join(graph, "bax") == {Node("bar"), Node("baz")}


def test_branch_and_event_requires_keep_their_prefix():
    graph = build({
        "jobs": {
            "main": {"requires": ["~commit:/^release-/", "~pr:main", "~release", "~tag", "~pr-closed"]},
        }
    })

    assert names(graph) == [
        "~pr", "~commit", "main", "~commit:/^release-/", "~pr:main", "~release", "~tag", "~pr-closed",
    ]
    assert get_next_jobs(graph, "~commit:release-1.2") == ["main"]
    assert get_next_jobs(graph, "~pr-closed") == ["main"]


def test_annotations_are_carried_on_nodes():
    graph = build({
        "jobs": {
            "main": {"annotations": {"screwdriver.cd/displayName": "Build"}},
            "gate": {"requires": ["main"], "annotations": {"virtualJob": True, "other": "x"}},
        }
    })

    assert graph.find_node("main") == Node("main", display_name="Build")
    assert graph.find_node("gate") == Node("gate", virtual=True)


def test_job_metadata_wins_over_earlier_requirement_entry():
    graph = build({
        "jobs": {
            "test": {"requires": ["main"]},
            "main": {"annotations": {"displayName": "Main build"}},
        }
    })

    assert names(graph) == ["~pr", "~commit", "test", "main"]
    assert graph.find_node("main").display_name == "Main build"


# ---------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------

STAGED = {
    "jobs": {
        "foo": {"requires": ["~commit"]},
        "C": {"requires": ["~stage@deploy:setup"], "stage": {"name": "deploy"}},
        "D": {"requires": ["C"], "stage": {"name": "deploy"}},
        "stage@deploy:teardown": {"requires": ["D"], "stage": {"name": "deploy"}},
        "after": {"requires": ["~stage@deploy"]},
    },
    "stages": {"deploy": {"requires": ["foo"], "jobs": ["C", "D"]}},
}


def test_stage_members_are_routed_to_stage_subgraph():
    result = build(STAGED)

    assert isinstance(result, StagedWorkflow)
    assert names(result.workflow) == ["~pr", "~commit", "foo", "after", "~stage@deploy"]
    assert list(result.workflow.edges) == [
        Edge("~commit", "foo"),
        Edge("stage@deploy:setup", "C"),
        Edge("~stage@deploy", "after"),
        Edge("foo", "stage@deploy:setup", join=True),
    ]

    deploy = result.stages["deploy"]
    assert names(deploy) == ["stage@deploy:setup", "C", "D", "stage@deploy:teardown"]
    assert all(n.stage_name == "deploy" for n in deploy.nodes)
    assert list(deploy.edges) == [
        Edge("C", "D", join=True),
        Edge("D", "stage@deploy:teardown", join=True),
    ]


def test_stage_listed_only_in_stage_config():
    result = build({
        "jobs": {"main": {}, "smoke": {"requires": ["main"]}},
        "stages": {"verify": {"jobs": ["smoke"]}},
    })

    assert names(result.workflow) == ["~pr", "~commit", "main", "~stage@verify"]
    assert result.stages["verify"].find_node("smoke").stage_name == "verify"
    assert list(result.stages["verify"].edges) == [Edge("main", "smoke", join=True)]


def test_start_from_job_is_not_wired_to_its_predecessor():
    result = build({
        "jobs": {
            "C": {"requires": ["~stage@deploy:setup"], "stage": {"name": "deploy"}},
            "D": {
                "requires": ["C", "~stage@deploy:setup"],
                "stage": {"name": "deploy", "startFrom": True},
            },
        },
    })

    assert Edge("C", "D", join=True) not in result.stages["deploy"].edges
    assert Edge("stage@deploy:setup", "D") in result.workflow.edges


def test_stage_requires_point_at_setup():
    result = build({
        "jobs": {"a": {}, "b": {}, "x": {"stage": {"name": "s"}}},
        "stages": {"s": {"requires": ["~a", "b"], "jobs": ["x"]}},
    })

    assert list(result.workflow.edges) == [
        Edge("a", "stage@s:setup"),
        Edge("b", "stage@s:setup", join=True),
    ]


# ---------------------------------------------------------------------
# External triggers
# ---------------------------------------------------------------------

def test_external_fan_out_is_bounded():
    resolver = StaticTriggerResolver({"sd@123:A": ["sd@111:X"], "sd@111:X": []})
    graph = build({"jobs": {"A": {}}}, resolver, 123)

    assert names(graph) == ["~pr", "~commit", "A", "sd@111:X"]
    assert graph.edges == (Edge("A", "sd@111:X", join=True),)
    assert resolver.queries == ["~sd@123:A", "sd@123:A", "sd@111:X"]


def test_external_or_downstream_is_not_a_join():
    resolver = StaticTriggerResolver({"~sd@123:A": ["~sd@456:Y"]})
    graph = build({"jobs": {"A": {}}}, resolver, 123)

    assert graph.edges == (Edge("A", "~sd@456:Y"),)
    assert "~sd@456:Y" in names(graph)


def test_external_chain_is_followed_transitively():
    resolver = StaticTriggerResolver({
        "sd@123:A": ["sd@111:X", "sd@333:W"],
        "sd@111:X": ["sd@222:Z"],
    })
    graph = build({"jobs": {"A": {}, "B": {"requires": ["A"]}}}, resolver, 123)

    assert names(graph) == ["~pr", "~commit", "A", "sd@111:X", "sd@333:W", "sd@222:Z", "B"]
    assert list(graph.edges) == [
        Edge("A", "sd@111:X", join=True),
        Edge("A", "sd@333:W", join=True),
        Edge("sd@111:X", "sd@222:Z", join=True),
        Edge("A", "B", join=True),
    ]


def test_external_cycle_terminates():
    resolver = StaticTriggerResolver({
        "sd@123:A": ["sd@111:X"],
        "sd@111:X": ["sd@123:A"],
    })
    graph = build({"jobs": {"A": {}}}, resolver, 123)

    assert Edge("sd@111:X", "sd@123:A", join=True) in graph.edges
    assert resolver.queries.count("sd@123:A") == 1


def test_shared_external_downstream_is_not_duplicated():
    resolver = StaticTriggerResolver({
        "sd@1:A": ["sd@2:X"],
        "sd@1:B": ["sd@2:X"],
        "sd@2:X": ["sd@3:Y"],
    })
    graph = build({"jobs": {"A": {}, "B": {}}}, resolver, 1)

    assert list(graph.edges).count(Edge("sd@2:X", "sd@3:Y", join=True)) == 1
    assert names(graph).count("sd@2:X") == 1


def test_resolver_failure_propagates():
    class Broken:
        async def get_dest_from_src(self, src):
            raise ExternalResolutionError("down", src=src)

    with pytest.raises(ExternalResolutionError):
        build({"jobs": {"A": {}}}, Broken(), 1)


def test_resolver_failure_cancels_other_lookups():
    cancelled = []

    class HalfBroken:
        async def get_dest_from_src(self, src):
            if src.endswith(":A"):
                raise ExternalResolutionError("down", src=src)
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.append(src)
                raise
            return []

    async def scenario():
        with pytest.raises(ExternalResolutionError):
            await get_workflow({"jobs": {"A": {}, "B": {}}}, HalfBroken(), 1)
        # still inside the loop: B's lookup must already be stopped
        return list(cancelled)

    assert asyncio.run(scenario()) == ["~sd@1:B"]
