"""Infrastructure client registry.

One management cluster serves many HostedClusters whose KubeVirt VMs may run
on different, independently versioned infrastructure clusters. The registry
maps a resource's KubeVirt platform identity to a client for the right
infrastructure cluster plus the versions discovered on it, and caches that
for the lifetime of the process.

Cached entries are read without locking. Population takes a lock scoped to
the resolution key, so unrelated infrastructure clusters are resolved in
parallel while concurrent first-time resolutions of the same key coalesce
onto a single client construction. An entry is stored with one dict
assignment after it is fully built, so readers never observe partial state.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

from lib.constants import LOCAL_INFRA_KEY, LOGGER_NAME
from lib.exceptions import ClusterUnreachableError, MissingPlatformSpecError
from lib.utils import Deadline, SemVer, format_duration, parse_semver

from .models import HostedResource, KubevirtPlatform, KubevirtPlatformSpec

logger = logging.getLogger(LOGGER_NAME)

# (namespace, kubevirt spec, timeout seconds) -> client with get_kubevirt_version/get_kubernetes_version
ClientFactory = Callable[[str, KubevirtPlatformSpec, Optional[float]], Any]


@dataclass(frozen=True)
class VersionPair:
    """Software levels of an infrastructure cluster."""

    kubevirt_version: SemVer
    kubernetes_version: SemVer


@dataclass(frozen=True)
class InfraClientEntry:
    key: str
    client: Any
    versions: VersionPair


def resolution_key(resource: HostedResource) -> str:
    """Derive the registry key from a resource's KubeVirt platform identity.

    Resources referencing the same infra kubeconfig secret share one entry;
    resources without credentials all use the management cluster.

    Raises:
        MissingPlatformSpecError: If the resource has no spec.platform.kubevirt
        ValueError: If the resource is not on the KubeVirt platform
    """
    platform = resource.platform
    if not isinstance(platform, KubevirtPlatform):
        raise ValueError(f"{resource.kind} {resource.namespace}/{resource.name} is not a KubeVirt resource")
    if platform.kubevirt is None:
        raise MissingPlatformSpecError(resource.kind, resource.namespace, resource.name)

    credentials = platform.kubevirt.credentials
    if credentials is None:
        return LOCAL_INFRA_KEY
    secret = credentials.infra_kubeconfig_secret
    return f"{resource.namespace}/{secret.name}/{secret.key}"


class InfraClientRegistry:
    """Process-wide cache of infrastructure cluster clients and versions."""

    def __init__(self, client_factory: Optional[ClientFactory] = None) -> None:
        """
        Args:
            client_factory: Builds a client for a resource's infrastructure cluster.
                Only required when entries are not pre-seeded.
        """
        self.client_factory = client_factory
        self._entries: Dict[str, InfraClientEntry] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._key_locks_guard = threading.Lock()
        self._closed = False

    @classmethod
    def seeded(cls, entries: Iterable[InfraClientEntry], client_factory: Optional[ClientFactory] = None) -> "InfraClientRegistry":
        """Registry pre-populated with entries (test doubles, static infra)."""
        registry = cls(client_factory)
        for entry in entries:
            registry.add_entry(entry)
        return registry

    def add_entry(self, entry: InfraClientEntry) -> None:
        self._entries[entry.key] = entry

    def entries(self) -> Dict[str, InfraClientEntry]:
        """Snapshot of committed entries."""
        return dict(self._entries)

    def _lock_for(self, key: str) -> threading.Lock:
        with self._key_locks_guard:
            if self._closed:
                raise ClusterUnreachableError(f"infra client registry is closed, cannot resolve {key}", key=key)
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def _forget_lock(self, key: str, lock: threading.Lock) -> None:
        # Committed keys are served from the cache and no longer need a lock
        with self._key_locks_guard:
            if self._key_locks.get(key) is lock:
                del self._key_locks[key]

    def resolve(self, resource: HostedResource, deadline: Optional[Deadline] = None) -> InfraClientEntry:
        """Return the client and versions of the resource's infrastructure cluster.

        Args:
            resource: KubeVirt HostedCluster or NodePool
            deadline: Deadline of the enclosing admission request

        Returns:
            InfraClientEntry for the resolution key

        Raises:
            MissingPlatformSpecError: If the resource lacks spec.platform.kubevirt
            ClusterUnreachableError: If the infra cluster cannot be reached in time
            InvalidVersionFormatError: If the infra cluster reports an unparseable version
        """
        key = resolution_key(resource)

        entry = self._entries.get(key)
        if entry is not None:
            logger.debug("Infra client cache hit for %s", key)
            return entry

        deadline = deadline or Deadline(None)
        lock = self._lock_for(key)
        remaining = deadline.remaining()
        acquired = lock.acquire(timeout=remaining) if remaining is not None else lock.acquire()
        if not acquired:
            raise ClusterUnreachableError(
                f"timed out after {format_duration(deadline.timeout)} waiting for infra cluster {key} to be resolved",
                key=key,
                timed_out=True,
            )
        try:
            # Another caller may have finished while we waited
            entry = self._entries.get(key)
            if entry is not None:
                logger.debug("Infra client for %s resolved by a concurrent request", key)
                return entry
            if self._closed:
                raise ClusterUnreachableError(f"infra client registry is closed, cannot resolve {key}", key=key)

            entry = self._build_entry(key, resource, deadline)
            self._entries[key] = entry
            self._forget_lock(key, lock)
            return entry
        finally:
            lock.release()

    def _build_entry(self, key: str, resource: HostedResource, deadline: Deadline) -> InfraClientEntry:
        if self.client_factory is None:
            raise ClusterUnreachableError(f"no client factory configured to reach infra cluster {key}", key=key)

        started = time.monotonic()
        deadline.check(f"connecting to infra cluster {key}", key=key)
        infra_client = self.client_factory(resource.namespace, resource.platform.kubevirt, deadline.remaining())

        try:
            deadline.check(f"discovering the KubeVirt version of {key}", key=key)
            kubevirt_version = infra_client.get_kubevirt_version(timeout=deadline.remaining())
            deadline.check(f"discovering the Kubernetes version of {key}", key=key)
            kubernetes_version = infra_client.get_kubernetes_version(timeout=deadline.remaining())
            # A slow last call may still overrun the deadline
            deadline.check(f"resolving infra cluster {key}", key=key)

            versions = VersionPair(
                kubevirt_version=parse_semver(kubevirt_version),
                kubernetes_version=parse_semver(kubernetes_version),
            )
        except Exception:
            _close_quietly(infra_client)
            raise

        logger.info(
            "Resolved infra cluster %s in %s: KubeVirt %s, Kubernetes %s",
            key,
            format_duration(time.monotonic() - started),
            versions.kubevirt_version,
            versions.kubernetes_version,
        )
        return InfraClientEntry(key=key, client=infra_client, versions=versions)

    def close(self) -> None:
        """Close every cached client. Called at process shutdown.

        Waits for in-flight resolutions to commit; later ones are rejected.
        """
        with self._key_locks_guard:
            self._closed = True
            locks = list(self._key_locks.values())
            self._key_locks = {}
        for lock in locks:
            with lock:
                pass

        entries, self._entries = self._entries, {}
        for entry in entries.values():
            _close_quietly(entry.client)


def _close_quietly(infra_client: Any) -> None:
    close = getattr(infra_client, "close", None)
    if close is None:
        return
    try:
        close()
    except Exception as e:
        logger.debug("Ignoring error while closing infra client: %s", e)
