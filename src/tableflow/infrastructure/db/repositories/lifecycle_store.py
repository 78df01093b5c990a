from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy import Engine, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from tableflow.application.ports.repositories import (
    DuplicateOrderCodeError,
    LifecycleStore,
    LifecycleTransaction,
    OptimisticConcurrencyError,
    OrderSnapshot,
    RunnerWork,
    TableOrdersData,
)
from tableflow.domain.common.ids import IssueId, LineItemId, OrderCode, OrderId, TicketId
from tableflow.domain.common.stream import Stream
from tableflow.domain.issue.entities import (
    Issue,
    IssueScope,
    OrderWideScope,
    ResolvedBy,
    StreamScope,
    TicketScope,
)
from tableflow.domain.issue.state import IssueStatus
from tableflow.domain.order.entities import Order
from tableflow.domain.ticket.entities import LineItem, Ticket
from tableflow.domain.ticket.state import TicketStatus
from tableflow.infrastructure.db.models.issue import IssueModel
from tableflow.infrastructure.db.models.order import OrderModel, TicketLineItemModel, TicketModel
from tableflow.infrastructure.db.session import get_engine


class SqlAlchemyLifecycleTransaction(LifecycleTransaction):
    """One database transaction over an order and its tickets and issues.

    Reads always refresh rows from the database so that a later read in the
    same transaction sees the writes made earlier in it. Writes are
    conditional on the version or status read before; a miss raises
    ``OptimisticConcurrencyError`` and the caller's transaction is rolled back.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_order(self, order_id: OrderId) -> Order | None:
        statement = select(OrderModel).where(OrderModel.id == str(order_id)).limit(1)
        model = self._session.execute(
            statement.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return _order_to_domain(model) if model is not None else None

    def get_order_by_code(self, code: OrderCode) -> Order | None:
        statement = select(OrderModel).where(OrderModel.code == str(code)).limit(1)
        model = self._session.execute(
            statement.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return _order_to_domain(model) if model is not None else None

    def get_ticket(self, ticket_id: TicketId) -> Ticket | None:
        statement = (
            select(TicketModel)
            .options(selectinload(TicketModel.items))
            .where(TicketModel.id == str(ticket_id))
            .limit(1)
        )
        model = self._session.execute(
            statement.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return _ticket_to_domain(model) if model is not None else None

    def list_tickets(self, order_id: OrderId) -> list[Ticket]:
        statement = (
            select(TicketModel)
            .options(selectinload(TicketModel.items))
            .where(TicketModel.order_id == str(order_id))
            .order_by(TicketModel.stream)
        )
        models = self._session.execute(
            statement.execution_options(populate_existing=True)
        ).scalars().all()
        return [_ticket_to_domain(model) for model in models]

    def list_issues(self, order_id: OrderId) -> list[Issue]:
        statement = (
            select(IssueModel)
            .where(IssueModel.order_id == str(order_id))
            .order_by(IssueModel.created_at, IssueModel.id)
        )
        models = self._session.execute(
            statement.execution_options(populate_existing=True)
        ).scalars().all()
        return [_issue_to_domain(model) for model in models]

    def add_order(self, order: Order, tickets: list[Ticket]) -> None:
        model = _order_to_model(order)
        model.tickets = [_ticket_to_model(ticket) for ticket in tickets]
        self._session.add(model)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise DuplicateOrderCodeError(f"order code {order.code} already in use") from exc

    def update_ticket(self, ticket: Ticket, expected_version: int) -> Ticket:
        statement = (
            update(TicketModel)
            .where(
                TicketModel.id == str(ticket.ticket_id),
                TicketModel.version == expected_version,
            )
            .values(
                status=ticket.status.value,
                ready_at=ticket.ready_at,
                delivered_at=ticket.delivered_at,
                version=expected_version + 1,
            )
        )
        result = self._session.execute(statement)
        if result.rowcount != 1:
            raise OptimisticConcurrencyError(f"ticket {ticket.ticket_id} version conflict")
        return replace(ticket, version=expected_version + 1)

    def add_issue(self, issue: Issue) -> None:
        self._session.add(_issue_to_model(issue))
        self._session.flush()

    def update_issue(self, issue: Issue, expected_status: IssueStatus) -> None:
        statement = (
            update(IssueModel)
            .where(
                IssueModel.id == str(issue.issue_id),
                IssueModel.status == expected_status.value,
            )
            .values(
                status=issue.status.value,
                resolved_at=issue.resolved_at,
                resolved_by=issue.resolved_by.value if issue.resolved_by else None,
                resolution_note=issue.resolution_note,
            )
        )
        result = self._session.execute(statement)
        if result.rowcount != 1:
            raise OptimisticConcurrencyError(f"issue {issue.issue_id} status conflict")

    def update_order(self, order: Order, expected_version: int) -> Order:
        statement = (
            update(OrderModel)
            .where(
                OrderModel.id == str(order.order_id),
                OrderModel.version == expected_version,
            )
            .values(
                closed_at=order.closed_at,
                customer_confirmed_at=order.customer_confirmed_at,
                resolution_required=order.resolution_required,
                version=expected_version + 1,
            )
        )
        result = self._session.execute(statement)
        if result.rowcount != 1:
            raise OptimisticConcurrencyError(f"order {order.code} version conflict")
        return replace(order, version=expected_version + 1)


class SqlAlchemyLifecycleStore(LifecycleStore):
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine or get_engine()

    @contextmanager
    def transaction(self) -> Iterator[SqlAlchemyLifecycleTransaction]:
        with Session(self._engine) as session:
            try:
                yield SqlAlchemyLifecycleTransaction(session)
                session.commit()
            except Exception:
                session.rollback()
                raise

    def get_order_by_code(self, code: OrderCode) -> Order | None:
        statement = select(OrderModel).where(OrderModel.code == str(code)).limit(1)
        with Session(self._engine) as session:
            model = session.execute(statement).scalar_one_or_none()
            return _order_to_domain(model) if model is not None else None

    def get_ticket(self, ticket_id: TicketId) -> Ticket | None:
        statement = (
            select(TicketModel)
            .options(selectinload(TicketModel.items))
            .where(TicketModel.id == str(ticket_id))
            .limit(1)
        )
        with Session(self._engine) as session:
            model = session.execute(statement).scalar_one_or_none()
            return _ticket_to_domain(model) if model is not None else None

    @contextmanager
    def _snapshot(self) -> Iterator[Session]:
        """A read-only session whose statements all see one committed state."""
        with Session(self._engine) as session:
            isolation_level = snapshot_isolation_level(self._engine)
            if isolation_level is not None:
                session.connection(execution_options={"isolation_level": isolation_level})
            yield session

    def get_order_snapshot(self, code: OrderCode) -> OrderSnapshot | None:
        with self._snapshot() as session:
            tx = SqlAlchemyLifecycleTransaction(session)
            order = tx.get_order_by_code(code)
            if order is None:
                return None
            return OrderSnapshot(
                order=order,
                tickets=tx.list_tickets(order.order_id),
                issues=tx.list_issues(order.order_id),
            )

    def list_tickets_with_orders(
        self,
        statuses: set[TicketStatus],
        stream: Stream | None = None,
    ) -> list[tuple[Ticket, Order]]:
        with self._snapshot() as session:
            return _select_tickets_with_orders(session, statuses, stream)

    def list_issues_with_orders(
        self,
        statuses: set[IssueStatus] | None = None,
    ) -> list[tuple[Issue, Order]]:
        with self._snapshot() as session:
            return _select_issues_with_orders(session, statuses)

    def get_runner_work(self, issue_statuses: set[IssueStatus]) -> RunnerWork:
        with self._snapshot() as session:
            return RunnerWork(
                issues=_select_issues_with_orders(session, issue_statuses),
                deliveries=_select_tickets_with_orders(session, {TicketStatus.READY}),
            )

    def list_orders_for_tables(
        self,
        table_numbers: list[int],
        closed_since: datetime,
    ) -> dict[int, TableOrdersData]:
        if not table_numbers:
            return {}
        statement = (
            select(OrderModel)
            .where(
                OrderModel.table_number.in_(table_numbers),
                or_(OrderModel.closed_at.is_(None), OrderModel.closed_at >= closed_since),
            )
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        )
        with self._snapshot() as session:
            models = session.execute(statement).scalars().all()
            orders = [_order_to_domain(model) for model in models]

        grouped: dict[int, TableOrdersData] = {}
        for order in orders:
            data = grouped.setdefault(order.table_number, TableOrdersData(active=[], recent_closed=[]))
            if order.is_closed:
                data.recent_closed.append(order)
            else:
                data.active.append(order)
        for data in grouped.values():
            data.recent_closed.sort(key=lambda order: (order.closed_at, str(order.order_id)), reverse=True)
        return grouped


_SNAPSHOT_ISOLATION_LEVELS = {"postgresql": "REPEATABLE READ"}


def snapshot_isolation_level(engine: Engine) -> str | None:
    # Multi-statement reads of one view must share a snapshot.
    return _SNAPSHOT_ISOLATION_LEVELS.get(engine.dialect.name)


def _select_tickets_with_orders(
    session: Session,
    statuses: set[TicketStatus],
    stream: Stream | None = None,
) -> list[tuple[Ticket, Order]]:
    statement = (
        select(TicketModel, OrderModel)
        .join(OrderModel, TicketModel.order_id == OrderModel.id)
        .options(selectinload(TicketModel.items))
        .where(TicketModel.status.in_([status.value for status in statuses]))
    )
    if stream is not None:
        statement = statement.where(TicketModel.stream == stream.value)
    statement = statement.order_by(TicketModel.created_at, TicketModel.id)
    rows = session.execute(statement).all()
    return [(_ticket_to_domain(ticket), _order_to_domain(order)) for ticket, order in rows]


def _select_issues_with_orders(
    session: Session,
    statuses: set[IssueStatus] | None = None,
) -> list[tuple[Issue, Order]]:
    statement = select(IssueModel, OrderModel).join(OrderModel, IssueModel.order_id == OrderModel.id)
    if statuses is not None:
        statement = statement.where(IssueModel.status.in_([status.value for status in statuses]))
    statement = statement.order_by(IssueModel.created_at.desc(), IssueModel.id.desc())
    rows = session.execute(statement).all()
    return [(_issue_to_domain(issue), _order_to_domain(order)) for issue, order in rows]


def _utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _order_to_model(order: Order) -> OrderModel:
    return OrderModel(
        id=str(order.order_id),
        code=str(order.code),
        table_number=order.table_number,
        created_at=order.created_at,
        closed_at=order.closed_at,
        customer_confirmed_at=order.customer_confirmed_at,
        resolution_required=order.resolution_required,
        version=order.version,
    )


def _order_to_domain(model: OrderModel) -> Order:
    return Order(
        order_id=OrderId(model.id),
        code=OrderCode(model.code),
        table_number=model.table_number,
        created_at=_utc(model.created_at),
        closed_at=_utc(model.closed_at),
        customer_confirmed_at=_utc(model.customer_confirmed_at),
        resolution_required=bool(model.resolution_required),
        version=model.version,
    )


def _ticket_to_model(ticket: Ticket) -> TicketModel:
    model = TicketModel(
        id=str(ticket.ticket_id),
        order_id=str(ticket.order_id),
        stream=ticket.stream.value,
        status=ticket.status.value,
        created_at=ticket.created_at,
        ready_at=ticket.ready_at,
        delivered_at=ticket.delivered_at,
        version=ticket.version,
    )
    model.items = [
        TicketLineItemModel(
            id=str(item.line_id),
            ticket_id=str(ticket.ticket_id),
            name=item.name,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            notes=item.notes,
        )
        for item in ticket.items
    ]
    return model


def _ticket_to_domain(model: TicketModel) -> Ticket:
    stream = Stream(model.stream)
    return Ticket(
        ticket_id=TicketId(model.id),
        order_id=OrderId(model.order_id),
        stream=stream,
        status=TicketStatus(model.status),
        created_at=_utc(model.created_at),
        ready_at=_utc(model.ready_at),
        delivered_at=_utc(model.delivered_at),
        items=[
            LineItem(
                line_id=LineItemId(item.id),
                stream=stream,
                name=item.name,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                notes=item.notes,
            )
            for item in model.items
        ],
        version=model.version,
    )


def _scope_to_columns(scope: IssueScope) -> tuple[str, str | None]:
    if isinstance(scope, TicketScope):
        return "ticket", str(scope.ticket_id)
    if isinstance(scope, StreamScope):
        return "stream", None
    return "order", None


def _scope_from_columns(model: IssueModel) -> IssueScope:
    if model.scope == "ticket" and model.ticket_id:
        return TicketScope(ticket_id=TicketId(model.ticket_id))
    if model.scope == "stream" and model.stream:
        return StreamScope(stream=Stream(model.stream))
    return OrderWideScope()


def _issue_to_model(issue: Issue) -> IssueModel:
    scope, ticket_id = _scope_to_columns(issue.scope)
    return IssueModel(
        id=str(issue.issue_id),
        order_id=str(issue.order_id),
        scope=scope,
        ticket_id=ticket_id,
        stream=issue.stream.value if issue.stream else None,
        type=issue.issue_type,
        description=issue.description,
        status=issue.status.value,
        created_at=issue.created_at,
        resolved_at=issue.resolved_at,
        resolved_by=issue.resolved_by.value if issue.resolved_by else None,
        resolution_note=issue.resolution_note,
    )


def _issue_to_domain(model: IssueModel) -> Issue:
    scope = _scope_from_columns(model)
    return Issue(
        issue_id=IssueId(model.id),
        order_id=OrderId(model.order_id),
        scope=scope,
        stream=None if isinstance(scope, OrderWideScope) else Stream(model.stream) if model.stream else None,
        issue_type=model.type,
        status=IssueStatus(model.status),
        created_at=_utc(model.created_at),
        description=model.description,
        resolved_at=_utc(model.resolved_at),
        resolved_by=ResolvedBy(model.resolved_by) if model.resolved_by else None,
        resolution_note=model.resolution_note,
    )
