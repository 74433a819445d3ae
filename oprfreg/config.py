"""
Registry configuration.

Values come from the environment (optionally a ``.env`` file):

    THRESHOLD             producers needed to reshare   (default 2)
    NUM_PEERS             roster size                   (default 3)
    OWNER_ADDRESS         roster/admin owner            (required)
    KEYGEN_ADMIN_ADDRESS  initial key-generation admin  (required)

Only the (threshold, numPeers) pairs that have a verifier circuit are
accepted.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import UnsupportedConfiguration
from .proofs import SUPPORTED_CONFIGURATIONS


@dataclass(frozen=True)
class RegistryConfig:
    threshold: int
    num_peers: int
    owner: str
    keygen_admin: str

    def __post_init__(self) -> None:
        if (self.threshold, self.num_peers) not in SUPPORTED_CONFIGURATIONS:
            raise UnsupportedConfiguration(self.threshold, self.num_peers)

    @property
    def circuit(self) -> str:
        return SUPPORTED_CONFIGURATIONS[(self.threshold, self.num_peers)]

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> RegistryConfig:
        """
        Build a config from *env* (``os.environ`` after loading
        ``.env`` when not given).
        """
        if env is None:
            load_dotenv(dotenv_path)
            env = os.environ

        def required(name: str) -> str:
            value = env.get(name)
            if not value:
                raise ValueError(f"{name} environment variable required")
            return value

        return cls(
            threshold=int(env.get("THRESHOLD", "2")),
            num_peers=int(env.get("NUM_PEERS", "3")),
            owner=required("OWNER_ADDRESS"),
            keygen_admin=required("KEYGEN_ADMIN_ADDRESS"),
        )
