"""Profile, member search, connection and presence endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from app.api.deps import get_current_user, get_hub, get_user_or_404
from app.database import get_db
from app.models import ConnectionStatus, User, UserConnection
from app.schemas import (
    ConnectionPage,
    ConnectionRead,
    OnlineUsers,
    Pagination,
    ProfileUpdate,
    SearchResult,
    UserProfile,
    UserRead,
    UserSearchPage,
    UserSummary,
)
from app.services import (
    connection_accepted_notification,
    connection_request_notification,
    publish_notification,
)
from linkup.realtime import RealtimeHub

router = APIRouter(prefix="/users", tags=["users"])

CONNECTION_ACTIONS = {"accept": ConnectionStatus.ACCEPTED, "decline": ConnectionStatus.DECLINED}


def _pagination(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, pages=(total + limit - 1) // limit)


def _contains(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _get_link(user_id: int, other_id: int, db: Session) -> UserConnection | None:
    stmt = select(UserConnection).where(
        or_(
            (UserConnection.requester_id == user_id) & (UserConnection.addressee_id == other_id),
            (UserConnection.requester_id == other_id) & (UserConnection.addressee_id == user_id),
        )
    )
    return db.execute(stmt).scalar_one_or_none()


def _serialize_connection(link: UserConnection, user_id: int) -> ConnectionRead:
    return ConnectionRead(
        id=link.id,
        user=UserSummary.model_validate(link.other_party(user_id)),
        status=link.status,
        direction="outgoing" if link.requester_id == user_id else "incoming",
        created_at=link.created_at,
        responded_at=link.responded_at,
    )


@router.get("/online", response_model=OnlineUsers)
async def list_online_users(
    db: Session = Depends(get_db),
    hub: RealtimeHub | None = Depends(get_hub),
    current_user: User = Depends(get_current_user),
) -> OnlineUsers:
    """Return identities currently reachable through the realtime hub."""

    user_ids = await hub.online_users() if hub is not None else []
    numeric_ids = [int(user_id) for user_id in user_ids if user_id.isdigit()]
    users: list[User] = []
    if numeric_ids:
        users = list(db.execute(select(User).where(User.id.in_(numeric_ids))).scalars())
    return OnlineUsers(
        user_ids=user_ids,
        users=[UserSummary.model_validate(user) for user in users],
    )


@router.put("/profile", response_model=UserRead)
async def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserRead:
    """Update mutable profile fields for the current member."""

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "profile_picture" in changes:
        changes["profile_picture"] = changes["profile_picture"] or None
    for field, value in changes.items():
        setattr(current_user, field, value)
    if changes:
        db.add(current_user)
        db.commit()
        db.refresh(current_user)
    return UserRead.model_validate(current_user)


@router.get("/search", response_model=UserSearchPage)
async def search_users(
    q: str = Query(default=""),
    industry: str | None = Query(default=None),
    location: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserSearchPage:
    """Case-insensitive match on name and headline, optionally narrowed by industry and location."""

    term = q.strip()
    if len(term) < 2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Search query must be at least 2 characters",
        )

    pattern = _contains(term)
    filters = [
        or_(
            User.first_name.ilike(pattern, escape="\\"),
            User.last_name.ilike(pattern, escape="\\"),
            User.headline.ilike(pattern, escape="\\"),
        )
    ]
    if industry:
        filters.append(User.industry.ilike(_contains(industry.strip()), escape="\\"))
    if location:
        filters.append(User.location.ilike(_contains(location.strip()), escape="\\"))

    total = db.execute(select(func.count(User.id)).where(*filters)).scalar_one()
    stmt = (
        select(User)
        .where(*filters)
        .order_by(User.first_name.asc(), User.last_name.asc(), User.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    users = db.execute(stmt).scalars().all()
    return UserSearchPage(
        users=[SearchResult.model_validate(user) for user in users],
        pagination=_pagination(page, limit, total),
    )


@router.get("/connections", response_model=ConnectionPage)
async def list_connections(
    connection_status: ConnectionStatus = Query(default=ConnectionStatus.ACCEPTED, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ConnectionPage:
    """Connections of the current member in one state, newest first."""

    filters = [
        UserConnection.status == connection_status,
        or_(
            UserConnection.requester_id == current_user.id,
            UserConnection.addressee_id == current_user.id,
        ),
    ]
    total = db.execute(select(func.count(UserConnection.id)).where(*filters)).scalar_one()
    stmt = (
        select(UserConnection)
        .where(*filters)
        .options(selectinload(UserConnection.requester), selectinload(UserConnection.addressee))
        .order_by(UserConnection.created_at.desc(), UserConnection.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    links = db.execute(stmt).scalars().all()
    return ConnectionPage(
        connections=[_serialize_connection(link, current_user.id) for link in links],
        pagination=_pagination(page, limit, total),
    )


@router.post("/connect/{user_id}", response_model=ConnectionRead, status_code=status.HTTP_201_CREATED)
async def send_connection_request(
    user_id: int,
    db: Session = Depends(get_db),
    hub: RealtimeHub | None = Depends(get_hub),
    current_user: User = Depends(get_current_user),
) -> ConnectionRead:
    """Ask another member to connect and notify them."""

    if user_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot connect to yourself")
    target = get_user_or_404(user_id, db)

    existing = _get_link(current_user.id, target.id, db)
    if existing is not None:
        if existing.status == ConnectionStatus.ACCEPTED:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Already connected")
        if existing.status == ConnectionStatus.PENDING:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Connection request already exists"
            )
        # A declined request may be sent again, by either side.
        db.delete(existing)
        db.flush()

    link = UserConnection(
        requester_id=current_user.id,
        addressee_id=target.id,
        status=ConnectionStatus.PENDING,
    )
    db.add(link)
    db.flush()
    notification = connection_request_notification(db, sender=current_user, recipient_id=target.id)
    db.commit()
    db.refresh(link)

    await publish_notification(hub, notification)
    return _serialize_connection(link, current_user.id)


@router.put("/connection/{user_id}/{action}", response_model=ConnectionRead)
async def respond_to_connection_request(
    user_id: int,
    action: str,
    db: Session = Depends(get_db),
    hub: RealtimeHub | None = Depends(get_hub),
    current_user: User = Depends(get_current_user),
) -> ConnectionRead:
    """Accept or decline a pending request sent by ``user_id``."""

    new_status = CONNECTION_ACTIONS.get(action)
    if new_status is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid action")
    requester = get_user_or_404(user_id, db)

    stmt = select(UserConnection).where(
        UserConnection.requester_id == requester.id,
        UserConnection.addressee_id == current_user.id,
        UserConnection.status == ConnectionStatus.PENDING,
    )
    link = db.execute(stmt).scalar_one_or_none()
    if link is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection request not found")

    link.respond(new_status)
    notification = None
    if new_status == ConnectionStatus.ACCEPTED:
        notification = connection_accepted_notification(db, sender=current_user, recipient_id=requester.id)
    db.commit()
    db.refresh(link)

    if notification is not None:
        await publish_notification(hub, notification)
    return _serialize_connection(link, current_user.id)


@router.delete("/connection/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_connection(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    """Drop the connection (or request) between the current member and ``user_id``."""

    other = get_user_or_404(user_id, db)
    link = _get_link(current_user.id, other.id, db)
    if link is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection not found")
    db.delete(link)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{user_id}", response_model=UserProfile)
async def read_profile(
    user_id: int,
    db: Session = Depends(get_db),
    hub: RealtimeHub | None = Depends(get_hub),
    current_user: User = Depends(get_current_user),
) -> UserProfile:
    user = get_user_or_404(user_id, db)
    online = await hub.is_online(user.id) if hub is not None else False
    connections_count = db.execute(
        select(func.count(UserConnection.id)).where(
            UserConnection.status == ConnectionStatus.ACCEPTED,
            or_(UserConnection.requester_id == user.id, UserConnection.addressee_id == user.id),
        )
    ).scalar_one()
    profile = UserProfile.model_validate(user)
    profile.online = online
    profile.connections_count = connections_count
    return profile
