"""
Tests for graph and path-view assembly and the build operations.
"""

import pytest
import networkx as nx
from funnelgraph.graph_types import Graph
from funnelgraph.name_codec import join_path
from funnelgraph.runner.graph_builder import (
    assemble_graph,
    assemble_paths,
    build_graph,
    build_paths,
    run_build_graph,
    run_build_paths,
    build_networkx_graph,
    find_entry_nodes,
    find_exit_nodes,
    get_graph_stats,
)
from funnelgraph.runner.summary_source import InMemorySummarySource
from funnelgraph.runner.types import (
    AnalyticsContext,
    AnalyticsError,
    BackendError,
    GraphRequest,
    PathsRequest,
    order_by_count_then_key,
    BACKEND_FAILURE,
    INVARIANT_VIOLATION,
)
from tests.fixtures.summaries import (
    checkout_edge_summary,
    checkout_path_summary,
    reserved_name_edge_summary,
    reserved_name_path_summary,
)


class FailingSource:
    """Summary source whose backend is down."""

    def fetch_graph_summaries(self, tenant, request):
        raise BackendError("connection refused")

    def fetch_path_summary(self, tenant, request):
        raise BackendError("connection refused")


def context_for(edges=None, paths=None, **kwargs):
    return AnalyticsContext(source=InMemorySummarySource(edges, paths), **kwargs)


class TestAssembleGraph:

    def test_checkout_graph(self):
        graph = assemble_graph(checkout_edge_summary(), checkout_path_summary())

        assert [n.name for n in graph.vertices] == ['login', 'browse', 'cart', 'pay', 'signup']
        assert len(graph.edges) == 5

    def test_vertices_sorted_by_id_and_contiguous(self):
        graph = assemble_graph(checkout_edge_summary(), checkout_path_summary())

        assert [n.id for n in graph.vertices] == list(range(len(graph.vertices)))

    def test_vertices_ranked(self):
        graph = assemble_graph(checkout_edge_summary(), checkout_path_summary())
        ranks = {n.name: n.rank for n in graph.vertices}

        assert ranks['login'] == 0
        assert ranks['login'] < ranks['browse'] < ranks['cart'] < ranks['pay']
        assert all(rank is not None for rank in ranks.values())

    def test_ranking_example(self):
        graph = assemble_graph({'A': {'B': 10}}, {'A>B>C': 10, 'A>C': 5})
        ranks = {n.name: n.rank for n in graph.vertices}

        assert ranks['A'] < ranks['C']

    @pytest.mark.parametrize('edges', [None, {}])
    def test_empty_edges_short_circuit(self, edges):
        graph = assemble_graph(edges, checkout_path_summary())

        assert graph == Graph(vertices=[], edges=[])
        assert graph.is_empty()

    def test_short_circuit_ignores_missing_paths(self):
        assert assemble_graph({}, None).is_empty()

    def test_missing_path_summary_with_edges_raises(self):
        with pytest.raises(ValueError):
            assemble_graph(checkout_edge_summary(), None)

    def test_edge_only_node_has_no_vertex(self):
        """Edge endpoints and path nodes are separate universes."""
        graph = assemble_graph({'a': {'ghost': 2}}, {'a': 3})

        assert [n.name for n in graph.vertices] == ['a']
        assert graph.edges[0].to == 'ghost'

    def test_reserved_names(self):
        graph = assemble_graph(reserved_name_edge_summary(), reserved_name_path_summary())

        assert [n.name for n in graph.vertices] == ['search > results', '100% off', '']
        assert {(e.from_, e.to) for e in graph.edges} == {
            ('search > results', '100% off'),
            ('100% off', ''),
        }

    def test_bucket_order_pins_ids(self):
        paths_a = {'Z': 1, 'X>Y': 5}
        paths_b = {'X>Y': 5, 'Z': 1}

        graph_a = assemble_graph({'X': {'Y': 5}}, paths_a, order_by_count_then_key)
        graph_b = assemble_graph({'X': {'Y': 5}}, paths_b, order_by_count_then_key)

        assert graph_a.vertices == graph_b.vertices
        assert [n.name for n in graph_a.vertices] == ['X', 'Y', 'Z']


class TestAssemblePaths:

    def test_first_seen_order(self):
        paths = assemble_paths({'X>Y': 1, 'Z': 1})

        assert [n.name for n in paths.vertices] == ['X', 'Y', 'Z']
        assert [n.id for n in paths.vertices] == [0, 1, 2]

    def test_no_ranking(self):
        paths = assemble_paths(checkout_path_summary())
        assert all(n.rank is None for n in paths.vertices)

    def test_paths_kept_encoded(self):
        summary = reserved_name_path_summary()
        paths = assemble_paths(summary)

        assert [(p.path, p.count) for p in paths.paths] == list(summary.items())

    def test_missing_summary_raises(self):
        with pytest.raises(ValueError):
            assemble_paths(None)

    def test_empty_summary(self):
        paths = assemble_paths({})
        assert paths.vertices == []
        assert paths.paths == []


class TestBuildOperations:

    def test_context_carries_only_source_and_order(self):
        """Backend settings live on the source, not on the context."""
        source = InMemorySummarySource({}, {})
        context = AnalyticsContext(source=source, bucket_order=order_by_count_then_key)

        assert context.source is source
        assert not hasattr(context, 'settings')
        with pytest.raises(TypeError):
            AnalyticsContext(source=source, settings=None)

    def test_build_graph(self):
        context = context_for(checkout_edge_summary(), checkout_path_summary())
        graph = build_graph('acme', context, GraphRequest())

        assert len(graph.vertices) == 5
        assert context.source.calls == [('graph', 'acme')]

    def test_build_paths_uses_path_summary_only(self):
        context = context_for(None, checkout_path_summary())
        paths = build_paths('acme', context, PathsRequest())

        assert len(paths.paths) == 4
        assert context.source.calls == [('paths', 'acme')]

    def test_backend_failure_wrapped(self):
        context = AnalyticsContext(source=FailingSource())

        with pytest.raises(AnalyticsError) as excinfo:
            build_graph('acme', context, GraphRequest())

        err = excinfo.value
        assert err.kind == BACKEND_FAILURE
        assert err.retryable
        assert isinstance(err.cause, BackendError)
        assert err.__cause__ is err.cause

    def test_decode_failure_is_invariant_violation(self):
        context = context_for({'a': {'b': 1}}, {'a>%ZZ': 1})

        with pytest.raises(AnalyticsError) as excinfo:
            build_graph('acme', context, GraphRequest())

        assert excinfo.value.kind == INVARIANT_VIOLATION
        assert not excinfo.value.retryable

    def test_missing_path_summary_is_invariant_violation(self):
        context = context_for(None, None)

        with pytest.raises(AnalyticsError) as excinfo:
            build_paths('acme', context, PathsRequest())

        assert excinfo.value.kind == INVARIANT_VIOLATION
        assert excinfo.value.operation == 'build_paths'

    def test_failure_logged(self, capsys):
        with pytest.raises(AnalyticsError):
            build_paths('acme', AnalyticsContext(source=FailingSource()), PathsRequest())

        out = capsys.readouterr().out
        assert '[build_paths]' in out
        assert 'acme' in out


class TestTypedResponses:

    def test_graph_success(self):
        response = run_build_graph(
            'acme', context_for(checkout_edge_summary(), checkout_path_summary()), GraphRequest()
        )

        assert response.success
        assert response.error is None
        assert len(response.result.vertices) == 5

    def test_graph_backend_failure(self):
        response = run_build_graph('acme', AnalyticsContext(source=FailingSource()), GraphRequest())

        assert not response.success
        assert response.result is None
        assert response.error.error_type == BACKEND_FAILURE
        assert response.error.details['cause_type'] == 'BackendError'

    def test_paths_invariant_violation(self):
        response = run_build_paths('acme', context_for(None, {'bad token': 1}), PathsRequest())

        assert not response.success
        assert response.error.error_type == INVARIANT_VIOLATION
        assert response.error.details['operation'] == 'build_paths'


class TestNetworkxExport:

    def test_nodes_and_edges(self):
        graph = assemble_graph(checkout_edge_summary(), checkout_path_summary())
        G = build_networkx_graph(graph)

        assert G.number_of_nodes() == 5
        assert G.number_of_edges() == 5
        assert G.edges['login', 'browse']['weight'] == 30
        assert G.nodes['login']['rank'] == 0

    def test_entry_and_exit(self):
        G = build_networkx_graph(assemble_graph(checkout_edge_summary(), checkout_path_summary()))

        assert find_entry_nodes(G) == ['login']
        assert find_exit_nodes(G) == ['pay']
        assert nx.is_directed_acyclic_graph(G)

    def test_dangling_endpoint(self):
        G = build_networkx_graph(assemble_graph({'a': {'ghost': 2}}, {'a': 3}))

        assert G.nodes['ghost']['dangling'] is True
        assert G.nodes['ghost']['id'] is None
        assert G.nodes['a']['dangling'] is False

    def test_graph_stats(self):
        stats = get_graph_stats(assemble_graph(checkout_edge_summary(), checkout_path_summary()))

        assert stats['node_count'] == 5
        assert stats['edge_count'] == 5
        assert stats['total_transitions'] == 72
        assert stats['entry_nodes'] == ['login']
        assert stats['exit_nodes'] == ['pay']
        assert stats['dangling_nodes'] == []
        assert stats['unranked_nodes'] == []
        assert stats['is_dag'] is True

    def test_stats_report_dangling(self):
        stats = get_graph_stats(assemble_graph({'a': {'ghost': 2}}, {'a': 3}))
        assert stats['dangling_nodes'] == ['ghost']

    def test_empty_graph_stats(self):
        stats = get_graph_stats(Graph.empty())

        assert stats['node_count'] == 0
        assert stats['entry_nodes'] == []
