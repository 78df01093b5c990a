from __future__ import annotations


class InvalidTransitionError(Exception):
    def __init__(self, entity: str, from_status: str, to_status: str) -> None:
        super().__init__(f"cannot move {entity} from status={from_status} to status={to_status}")
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status
        self.details = {"entity": entity, "from": from_status, "to": to_status}
