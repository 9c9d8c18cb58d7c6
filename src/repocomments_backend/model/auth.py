import uuid

from sqlalchemy import (
    CheckConstraint, Column, DateTime, Enum, ForeignKey, Index, String, func
)
from sqlalchemy.orm import relationship

from .base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = 'users'

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(320), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    avatar_url = Column(String(2048))
    provider = Column(Enum('github', 'google', 'okta', 'internal', name='auth_provider'), nullable=False, default='internal')
    provider_id = Column(String(255))
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())
    last_login = Column(DateTime(True))

    # Relationships
    team_memberships = relationship("TeamMember", back_populates="user", uselist=True, lazy="select")
    permissions = relationship("Permission", back_populates="user", uselist=True, lazy="select")


class Team(Base):
    __tablename__ = 'teams'

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(String(1024))
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())

    members = relationship("TeamMember", back_populates="team", uselist=True, lazy="select")
    permissions = relationship("Permission", back_populates="team", uselist=True, lazy="select")


class TeamMember(Base):
    __tablename__ = 'team_members'
    __table_args__ = (
        Index('team_members_team_id_user_id_key', 'team_id', 'user_id', unique=True),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    team_id = Column(ForeignKey('teams.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())

    team = relationship('Team', back_populates='members')
    user = relationship('User', back_populates='team_memberships')


class Permission(Base):
    """A repository grant, given either to a single user or to a team."""
    __tablename__ = 'permissions'
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (team_id IS NULL)",
            name='ck_permissions_user_xor_team'
        ),
        Index('permissions_repo_user_id_idx', 'repo', 'user_id'),
        Index('permissions_repo_team_id_idx', 'repo', 'team_id'),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    repo = Column(String(512), nullable=False)
    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'))
    team_id = Column(ForeignKey('teams.id', ondelete='CASCADE'))
    role = Column(Enum('read', 'write', 'admin', name='repo_role'), nullable=False)
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())

    user = relationship('User', back_populates='permissions')
    team = relationship('Team', back_populates='permissions')
