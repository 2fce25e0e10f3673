"""Watch module for etcd-client."""

from .observer import Handler, Observer, ObserverState

__all__ = ["Handler", "Observer", "ObserverState"]
