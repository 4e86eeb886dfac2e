"""Leader election for pod-logger.

Submodules
----------
lease       -- LeaseRecord, LeaseLock ABC, KubernetesLeaseLock.
elector     -- LeaderElector: acquire / renew / release over a lease lock.
coordinator -- LeadershipCoordinator: follower/acquiring/leader state machine
               that runs one logging pass per leadership term.
"""

from podlogger.election.coordinator import LeadershipCoordinator, LeadershipEvent, LeadershipState
from podlogger.election.elector import ElectionConfig, LeaderCallbacks, LeaderElector
from podlogger.election.lease import KubernetesLeaseLock, LeaseLock, LeaseRecord

__all__ = [
    "ElectionConfig",
    "KubernetesLeaseLock",
    "LeaderCallbacks",
    "LeaderElector",
    "LeadershipCoordinator",
    "LeadershipEvent",
    "LeadershipState",
    "LeaseLock",
    "LeaseRecord",
]
