"""es-node-keeper.

Watchdog for locally hosted Elasticsearch nodes:
 - polls the cluster for the set of active node names
 - restarts the local systemd unit of any declared node that dropped out
 - only restarts when the cluster is not red and shard allocation is enabled
 - keeps an audit trail of every decision

The decision logic lives in :mod:`nodekeeper.reconciler`.
"""
from __future__ import annotations

__version__ = "0.20.0"
