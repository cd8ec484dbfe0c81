"""
Storage collaborators used by the card engine.

GameStore is the persistent store for games, images, grid groups, grids
and draw sessions. BlobStore returns raw bytes for a source reference,
either a user photo URL or a built-in theme background.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import httpx

from models import BingoImage, DrawSession, GameConfig, Grid, GridGroup

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class GameStore(ABC):
    """
    Abstract persistent store.

    Reads return snapshots; callers never mutate returned models in place.
    """

    @abstractmethod
    async def get_game_config(self, game_id: str) -> Optional[GameConfig]:
        pass

    @abstractmethod
    async def list_images(self, game_id: str) -> List[BingoImage]:
        """Images of a game in a stable order."""
        pass

    @abstractmethod
    async def list_grid_groups(self, game_id: str) -> List[GridGroup]:
        pass

    @abstractmethod
    async def create_grid_group(self, game_id: str, name: str, size: int) -> GridGroup:
        pass

    @abstractmethod
    async def delete_grid_group(self, grid_group_id: str) -> None:
        """Delete a group and, by cascade, all of its grids."""
        pass

    @abstractmethod
    async def list_grids(self, grid_group_id: str) -> List[Grid]:
        """Grids of a group in creation order."""
        pass

    @abstractmethod
    async def get_grids(self, grid_ids: Sequence[str]) -> List[Grid]:
        """Grids by id, in the order requested; unknown ids are omitted."""
        pass

    @abstractmethod
    async def create_grids(self, grid_group_id: str, grids: Sequence[Tuple[str, List[str]]]) -> List[Grid]:
        """Batch insert of (name, cells) pairs."""
        pass

    @abstractmethod
    async def create_session(self, game_id: str, name: str) -> DrawSession:
        """Create an active session, deactivating the game's others."""
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[DrawSession]:
        pass

    @abstractmethod
    async def save_session(self, session: DrawSession) -> DrawSession:
        pass

    async def delete_grid_groups(self, game_id: str, keep: Optional[str] = None) -> int:
        """Delete every grid group of a game except keep; returns how many were removed."""
        groups = [g for g in await self.list_grid_groups(game_id) if g.id != keep]
        for group in groups:
            await self.delete_grid_group(group.id)
        return len(groups)


class InMemoryGameStore(GameStore):
    """Process-local store for development and tests."""

    def __init__(self):
        self.games: Dict[str, GameConfig] = {}
        self.images: Dict[str, List[BingoImage]] = {}
        self.grid_groups: Dict[str, GridGroup] = {}
        self.grids: Dict[str, Grid] = {}
        self.sessions: Dict[str, DrawSession] = {}

    def add_game(self, config: GameConfig, images: Sequence[BingoImage] = ()) -> GameConfig:
        self.games[config.id] = config
        self.images[config.id] = list(images)
        return config

    async def get_game_config(self, game_id: str) -> Optional[GameConfig]:
        return self.games.get(game_id)

    async def list_images(self, game_id: str) -> List[BingoImage]:
        return list(self.images.get(game_id, []))

    async def list_grid_groups(self, game_id: str) -> List[GridGroup]:
        return [g for g in self.grid_groups.values() if g.game_id == game_id]

    async def create_grid_group(self, game_id: str, name: str, size: int) -> GridGroup:
        group = GridGroup(id=_new_id(), game_id=game_id, name=name, size=size)
        self.grid_groups[group.id] = group
        return group

    async def delete_grid_group(self, grid_group_id: str) -> None:
        self.grid_groups.pop(grid_group_id, None)
        for grid_id in [g.id for g in self.grids.values() if g.grid_group_id == grid_group_id]:
            del self.grids[grid_id]

    async def list_grids(self, grid_group_id: str) -> List[Grid]:
        # dicts keep insertion order, which is creation order
        return [g for g in self.grids.values() if g.grid_group_id == grid_group_id]

    async def get_grids(self, grid_ids: Sequence[str]) -> List[Grid]:
        return [self.grids[grid_id] for grid_id in grid_ids if grid_id in self.grids]

    async def create_grids(self, grid_group_id: str, grids: Sequence[Tuple[str, List[str]]]) -> List[Grid]:
        created = []
        for name, cells in grids:
            grid = Grid(id=_new_id(), grid_group_id=grid_group_id, name=name, cells=list(cells))
            self.grids[grid.id] = grid
            created.append(grid)
        return created

    async def create_session(self, game_id: str, name: str) -> DrawSession:
        for session in self.sessions.values():
            if session.game_id == game_id:
                session.is_active = False
        session = DrawSession(id=_new_id(), game_id=game_id, name=name)
        self.sessions[session.id] = session
        return session

    async def get_session(self, session_id: str) -> Optional[DrawSession]:
        return self.sessions.get(session_id)

    async def save_session(self, session: DrawSession) -> DrawSession:
        self.sessions[session.id] = session
        return session


class BlobStore(ABC):
    """Source of raw bytes for image references."""

    @abstractmethod
    async def fetch_bytes(self, source_ref: str) -> bytes:
        """Return the bytes behind source_ref, raising on failure."""
        pass


class HttpBlobStore(BlobStore):
    """Fetches user photos from public storage URLs."""

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client

    async def fetch_bytes(self, source_ref: str) -> bytes:
        if self._client is not None:
            response = await self._client.get(source_ref)
            response.raise_for_status()
            return response.content

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            response = await client.get(source_ref)
            response.raise_for_status()
            return response.content


class LocalBlobStore(BlobStore):
    """Reads built-in assets (theme backgrounds) from a directory."""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def _path_for(self, source_ref: str) -> Path:
        path = (self.root / source_ref.lstrip("/")).resolve()
        if self.root not in path.parents:
            raise FileNotFoundError(f"Asset outside asset root: {source_ref}")
        return path

    async def fetch_bytes(self, source_ref: str) -> bytes:
        path = self._path_for(source_ref)
        return await asyncio.to_thread(path.read_bytes)


class RoutingBlobStore(BlobStore):
    """HTTP(S) references go to the remote store, everything else is local."""

    def __init__(self, remote: BlobStore, local: BlobStore):
        self.remote = remote
        self.local = local

    async def fetch_bytes(self, source_ref: str) -> bytes:
        if source_ref.startswith(("http://", "https://")):
            return await self.remote.fetch_bytes(source_ref)
        return await self.local.fetch_bytes(source_ref)
