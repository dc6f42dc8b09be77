from typing import Any, Dict, Iterable, List, Type

from sqlalchemy import select, func

from database.models import CareNeed, Language, Preference
from database.repositories.base import BaseRepository


class ReferenceRepository(BaseRepository):
    """Care needs, languages and preferences."""

    MODELS: Dict[str, Type] = {
        'care_needs': CareNeed,
        'languages': Language,
        'preferences': Preference,
    }

    def by_ids(self, model: Type, ids: Iterable[Any]) -> List[Any]:
        ids = list(ids)
        if not ids:
            return []
        stmt = select(model).where(model.id.in_(ids), model.is_deleted.is_(False))
        return list(self.db.execute(stmt).scalars().all())

    def by_names(self, model: Type, names: Iterable[str]) -> Dict[str, Any]:
        """Case-insensitive name lookup; keys are the lower-cased names."""
        lowered = sorted({n.strip().lower() for n in names if n and n.strip()})
        if not lowered:
            return {}
        stmt = select(model).where(func.lower(model.name).in_(lowered), model.is_deleted.is_(False))
        return {row.name.lower(): row for row in self.db.execute(stmt).scalars().all()}

    def list_all(self, model: Type) -> List[Any]:
        stmt = select(model).where(model.is_deleted.is_(False)).order_by(model.name)
        return list(self.db.execute(stmt).scalars().all())

    def care_needs(self, ids: Iterable[Any]) -> List[CareNeed]:
        return self.by_ids(CareNeed, ids)

    def languages(self, ids: Iterable[Any]) -> List[Language]:
        return self.by_ids(Language, ids)

    def preferences(self, ids: Iterable[Any]) -> List[Preference]:
        return self.by_ids(Preference, ids)
