"""
Unit tests for FSR packet generation and the scope-limited relay rule
"""

import logging

import pytest
from fsr.flooding import FloodingEngine
from fsr.lsdb import TopologyDatabase
from fsr.neighbor import NeighborTable
from fsr.packets import Hello, LinkStateUpdate, LspEntry
from fsr.constants import MAX_SEQUENCE_NUMBER
from fakes import ManualScheduler

SELF = "10.0.0.1"
SCOPE = 3


@pytest.fixture
def engine():
    scheduler = ManualScheduler()
    neighbors = NeighborTable(6.0, scheduler)
    topology = TopologyDatabase(SELF, 30)
    return FloodingEngine(SELF, SCOPE, neighbors, topology)


def lsu(source, seq, hop_count, *entries):
    return LinkStateUpdate(
        source_address=source,
        sequence_number=seq,
        hop_count=hop_count,
        entries=[LspEntry(originator, seq, tuple(neighbors)) for originator, neighbors in entries]
    )


class TestGeneration:
    """Test locally originated packets"""

    def test_hello(self, engine):
        hello = engine.generate_hello()

        assert isinstance(hello, Hello)
        assert hello.source_address == SELF
        assert hello.sequence_number == 1
        assert hello.hop_count == 1

    def test_no_lsp_without_neighbors(self, engine):
        assert engine.generate_lsp() is None
        assert engine.sequence_number == 0

    def test_lsp_announces_neighbors(self, engine):
        engine.process_inbound(Hello("10.0.0.3", 1), "10.0.0.3", 0.0)
        engine.process_inbound(Hello("10.0.0.2", 1), "10.0.0.2", 0.0)

        lsp = engine.generate_lsp()

        assert lsp.source_address == SELF
        assert lsp.hop_count == SCOPE
        assert len(lsp.entries) == 1
        assert lsp.entries[0].originator == SELF
        assert lsp.entries[0].neighbors == ("10.0.0.2", "10.0.0.3")
        assert lsp.entries[0].sequence_number == lsp.sequence_number

    def test_lsp_refreshes_own_entry(self, engine):
        engine.process_inbound(Hello("10.0.0.2", 1), "10.0.0.2", 0.0)
        lsp = engine.generate_lsp()

        own = engine.topology.own_entry()
        assert own.sequence_number == lsp.sequence_number
        assert own.neighbors == frozenset({"10.0.0.2"})

    def test_sequence_shared_across_kinds(self, engine):
        engine.process_inbound(Hello("10.0.0.2", 1), "10.0.0.2", 0.0)

        sequences = [
            engine.generate_hello().sequence_number,
            engine.generate_lsp().sequence_number,
            engine.generate_hello().sequence_number,
            engine.generate_lsp().sequence_number
        ]
        assert sequences == [1, 2, 3, 4]

    def test_sequence_wraps(self, engine):
        engine.sequence_number = MAX_SEQUENCE_NUMBER
        assert engine.generate_hello().sequence_number == 0

    def test_sequence_wrap_logged(self, engine, caplog):
        engine.sequence_number = MAX_SEQUENCE_NUMBER
        with caplog.at_level(logging.WARNING, logger="fsr.flooding"):
            engine.generate_hello()

        assert any("wrapped" in record.getMessage() for record in caplog.records)

    def test_no_warning_before_wrap(self, engine, caplog):
        with caplog.at_level(logging.WARNING, logger="fsr.flooding"):
            engine.generate_hello()

        assert not caplog.records


class TestInboundHello:
    """Test Hello processing"""

    def test_new_neighbor(self, engine):
        result = engine.process_inbound(Hello("10.0.0.2", 1), "10.0.0.2", 0.0)

        assert result.neighbors_changed
        assert result.needs_recompute
        assert result.relay is None
        assert "10.0.0.2" in engine.neighbor_table
        assert engine.topology.own_entry().neighbors == frozenset({"10.0.0.2"})

    def test_known_neighbor_refresh(self, engine):
        engine.process_inbound(Hello("10.0.0.2", 1), "10.0.0.2", 0.0)
        result = engine.process_inbound(Hello("10.0.0.2", 2), "10.0.0.2", 1.0)

        assert not result.needs_recompute

    def test_hello_uses_transport_sender(self, engine):
        engine.process_inbound(Hello("10.0.0.7", 1), "10.0.0.2", 0.0)
        assert engine.neighbor_table.current_set() == frozenset({"10.0.0.2"})


class TestSelfDrop:
    """Test the loop guard at the boundary"""

    def test_sender_is_self(self, engine):
        result = engine.process_inbound(Hello("10.0.0.2", 1), SELF, 0.0)

        assert result.dropped
        assert engine.neighbor_table.get_neighbor_count() == 0

    def test_own_lsp_relayed_back(self, engine):
        packet = lsu(SELF, 9, 2, (SELF, ["10.0.0.2"]))
        result = engine.process_inbound(packet, "10.0.0.2", 0.0)

        assert result.dropped
        assert result.relay is None
        assert engine.neighbor_table.get_neighbor_count() == 0


class TestInboundLsp:
    """Test LSP processing and relay"""

    def test_accepted_entries_stored(self, engine):
        packet = lsu("10.0.0.2", 5, SCOPE, ("10.0.0.2", ["10.0.0.1", "10.0.0.3"]))
        result = engine.process_inbound(packet, "10.0.0.2", 0.0)

        assert result.accepted == 1
        assert result.topology_changed
        entry = engine.topology.get_entry("10.0.0.2")
        assert entry.sequence_number == 5
        assert entry.neighbors == frozenset({"10.0.0.1", "10.0.0.2", "10.0.0.3"})

    def test_originator_counts_as_neighbor_contact(self, engine):
        packet = lsu("10.0.0.2", 5, SCOPE, ("10.0.0.2", ["10.0.0.3"]))
        result = engine.process_inbound(packet, "10.0.0.2", 0.0)

        assert result.neighbors_changed
        assert "10.0.0.2" in engine.neighbor_table

    def test_relayed_lsp_is_not_contact_with_originator(self, engine):
        packet = lsu("10.0.0.3", 5, SCOPE, ("10.0.0.3", ["10.0.0.2"]))
        result = engine.process_inbound(packet, "10.0.0.2", 0.0)

        assert not result.neighbors_changed
        assert "10.0.0.3" not in engine.neighbor_table

    def test_relay_decrements_hop_count(self, engine):
        packet = lsu("10.0.0.3", 5, 3, ("10.0.0.3", ["10.0.0.2", "10.0.0.4"]))
        result = engine.process_inbound(packet, "10.0.0.2", 0.0)

        relay = result.relay
        assert relay is not None
        assert relay.hop_count == 2
        assert relay.source_address == "10.0.0.3"
        assert relay.sequence_number == 5
        assert relay.entries == packet.entries

    def test_last_hop_not_relayed(self, engine):
        packet = lsu("10.0.0.3", 5, 1, ("10.0.0.3", ["10.0.0.2"]))
        result = engine.process_inbound(packet, "10.0.0.2", 0.0)

        assert result.accepted == 1
        assert result.relay is None

    def test_stale_not_relayed(self, engine):
        packet = lsu("10.0.0.3", 5, 3, ("10.0.0.3", ["10.0.0.2"]))
        engine.process_inbound(packet, "10.0.0.2", 0.0)
        result = engine.process_inbound(packet, "10.0.0.4", 0.0)

        assert result.accepted == 0
        assert result.stale == 1
        assert result.relay is None
        assert not result.needs_recompute

    def test_relay_when_any_entry_accepted(self, engine):
        engine.process_inbound(lsu("10.0.0.3", 9, 3, ("10.0.0.3", [])), "10.0.0.2", 0.0)
        packet = LinkStateUpdate("10.0.0.4", 7, 3, [
            LspEntry("10.0.0.3", 7, ()),
            LspEntry("10.0.0.4", 7, ("10.0.0.5",))
        ])
        result = engine.process_inbound(packet, "10.0.0.2", 0.0)

        assert result.accepted == 1
        assert result.stale == 1
        assert result.relay is not None

    def test_entry_for_self_ignored(self, engine):
        packet = LinkStateUpdate("10.0.0.2", 8, 3, [
            LspEntry("10.0.0.2", 8, (SELF,)),
            LspEntry(SELF, 8, ("10.0.0.9",))
        ])
        result = engine.process_inbound(packet, "10.0.0.2", 0.0)

        assert result.accepted == 1
        assert result.stale == 1
        assert "10.0.0.9" not in engine.topology.own_entry().neighbors


class TestNeighborExpiry:
    """Test neighbor expiry handling"""

    def test_expire_refreshes_own_entry(self, engine):
        engine.process_inbound(Hello("10.0.0.2", 1), "10.0.0.2", 0.0)
        engine.process_inbound(Hello("10.0.0.3", 1), "10.0.0.3", 0.0)

        assert engine.expire_neighbor("10.0.0.2") is True
        assert engine.topology.own_entry().neighbors == frozenset({"10.0.0.3"})

    def test_expire_unknown(self, engine):
        assert engine.expire_neighbor("10.0.0.2") is False

    def test_lsp_stops_after_last_neighbor_expires(self, engine):
        engine.process_inbound(Hello("10.0.0.2", 1), "10.0.0.2", 0.0)
        engine.expire_neighbor("10.0.0.2")

        assert engine.generate_lsp() is None
