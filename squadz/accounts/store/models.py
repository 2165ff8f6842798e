"""Credential store database models."""

from typing import Any, Optional
from datetime import datetime

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, \
    TypeDecorator
from sqlalchemy.orm import declarative_base, relationship

from .. import domain, util

Base = declarative_base()


class EpochTime(TypeDecorator):
    """Timezone-aware :class:`datetime` stored as UNIX time."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime],
                           dialect: Any) -> Optional[int]:
        if value is None:
            return None
        return util.epoch(value)

    def process_result_value(self, value: Optional[int],
                             dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return util.from_epoch(value)


class DBAccount(Base):  # type: ignore
    """
    Account table.

    +-----------------------------+-------------+------+-----+------------+
    | Field                       | Type        | Null | Key | Default    |
    +-----------------------------+-------------+------+-----+------------+
    | account_id                  | varchar(36) | NO   | PRI |            |
    | public_id                   | varchar(32) | NO   | UNI |            |
    | email                       | varchar(255)| NO   | UNI |            |
    | username                    | varchar(64) | NO   | UNI |            |
    | full_name                   | varchar(255)| NO   |     |            |
    | password_hash               | varchar(255)| YES  |     | NULL       |
    | origin                      | varchar(16) | NO   |     |            |
    | apple_id                    | varchar(255)| YES  | UNI | NULL       |
    | google_id                   | varchar(255)| YES  | UNI | NULL       |
    | email_verified              | tinyint(1)  | NO   |     | 0          |
    | verification_code           | varchar(6)  | YES  |     | NULL       |
    | verification_code_expires   | int(11)     | YES  |     | NULL       |
    | setup_stage_1 .. _4         | tinyint(1)  | NO   |     | 0          |
    | setup_complete              | tinyint(1)  | NO   |     | 0          |
    | setup_stages_completed      | int(1)      | NO   |     | 0          |
    | role                        | varchar(16) | NO   |     | unverified |
    | failed_login_attempts       | int(4)      | NO   |     | 0          |
    | locked_until                | int(11)     | YES  |     | NULL       |
    | reset_token_hash            | varchar(64) | YES  |     | NULL       |
    | reset_token_expires         | int(11)     | YES  |     | NULL       |
    | token_version               | int(11)     | NO   |     | 0          |
    | created                     | int(11)     | NO   |     |            |
    | updated                     | int(11)     | NO   |     |            |
    +-----------------------------+-------------+------+-----+------------+
    """

    __tablename__ = 'accounts'

    account_id = Column(String(36), primary_key=True)
    public_id = Column(String(32), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    username = Column(String(64), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    password_hash = Column(String(255))
    origin = Column(String(16), nullable=False)
    apple_id = Column(String(255), unique=True)
    google_id = Column(String(255), unique=True)

    email_verified = Column(Boolean, nullable=False, default=False)
    verification_code = Column(String(6))
    verification_code_expires = Column(EpochTime)

    setup_stage_1 = Column(Boolean, nullable=False, default=False)
    setup_stage_2 = Column(Boolean, nullable=False, default=False)
    setup_stage_3 = Column(Boolean, nullable=False, default=False)
    setup_stage_4 = Column(Boolean, nullable=False, default=False)
    setup_complete = Column(Boolean, nullable=False, default=False)
    setup_stages_completed = Column(Integer, nullable=False, default=0)

    role = Column(String(16), nullable=False,
                  default=domain.Role.UNVERIFIED)

    failed_login_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(EpochTime)

    reset_token_hash = Column(String(64), index=True)
    reset_token_expires = Column(EpochTime)

    token_version = Column(Integer, nullable=False, default=0)

    created = Column(EpochTime, nullable=False, default=util.now)
    updated = Column(EpochTime, nullable=False, default=util.now,
                     onupdate=util.now)

    refresh_tokens = relationship('DBRefreshToken', back_populates='account')

    def get_stage(self, stage: int) -> bool:
        """Get the completion flag of a setup stage."""
        return bool(getattr(self, f'setup_stage_{stage}'))

    def set_stage(self, stage: int, complete: bool) -> None:
        """
        Set the completion flag of a setup stage.

        Keeps :attr:`setup_stages_completed` and :attr:`setup_complete`
        consistent with the individual flags.
        """
        setattr(self, f'setup_stage_{stage}', complete)
        self.setup_stages_completed = sum(
            1 for s in domain.SETUP_STAGES if self.get_stage(s)
        )
        self.setup_complete = \
            self.setup_stages_completed == len(domain.SETUP_STAGES)

    def to_domain(self) -> domain.Account:
        """Generate an :class:`.Account` from this row."""
        return domain.Account(
            account_id=self.account_id,
            public_id=self.public_id,
            email=self.email,
            username=self.username,
            full_name=self.full_name,
            origin=self.origin,
            role=self.role,
            email_verified=bool(self.email_verified),
            apple_id=self.apple_id,
            google_id=self.google_id,
            setup_stages=tuple(self.get_stage(s)   # type: ignore
                               for s in domain.SETUP_STAGES),
            failed_login_attempts=self.failed_login_attempts or 0,
            locked_until=self.locked_until,
            token_version=self.token_version or 0,
            created=self.created
        )


class DBRefreshToken(Base):  # type: ignore
    """
    One row per active session.

    Only a hash of the refresh token is stored, never the token itself.

    +---------------+-------------+------+-----+---------+----------------+
    | Field         | Type        | Null | Key | Default | Extra          |
    +---------------+-------------+------+-----+---------+----------------+
    | record_id     | int(11)     | NO   | PRI | NULL    | auto_increment |
    | account_id    | varchar(36) | NO   | MUL |         |                |
    | token_hash    | varchar(64) | NO   | UNI |         |                |
    | token_version | int(11)     | NO   |     |         |                |
    | expires       | int(11)     | NO   |     |         |                |
    | created       | int(11)     | NO   |     |         |                |
    +---------------+-------------+------+-----+---------+----------------+
    """

    __tablename__ = 'refresh_tokens'
    __table_args__ = {'sqlite_autoincrement': True}

    record_id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(ForeignKey('accounts.account_id'), nullable=False,
                        index=True)
    token_hash = Column(String(64), nullable=False, unique=True)
    token_version = Column(Integer, nullable=False)
    expires = Column(EpochTime, nullable=False)
    created = Column(EpochTime, nullable=False, default=util.now)

    account = relationship('DBAccount', back_populates='refresh_tokens')
