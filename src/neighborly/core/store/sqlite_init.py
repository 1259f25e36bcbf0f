"""SQLite 数据库初始化

PRAGMA 配置 + 全部表 DDL + 索引创建。
外键从子表指向父表，删除时必须先删子表（见 atomic.delete_community_cascade）。
使用 aiosqlite 异步操作。
"""

import aiosqlite

_USERS_DDL = """
CREATE TABLE IF NOT EXISTS users (
    id                 TEXT PRIMARY KEY,
    email              TEXT UNIQUE,
    first_name         TEXT,
    last_name          TEXT,
    profile_image_url  TEXT,
    phone              TEXT,
    address            TEXT,
    rating             TEXT NOT NULL DEFAULT '0.00',
    completed_tasks    INTEGER NOT NULL DEFAULT 0,
    help_given         INTEGER NOT NULL DEFAULT 0,
    help_received      INTEGER NOT NULL DEFAULT 0,
    created_at         TEXT NOT NULL,
    updated_at         TEXT NOT NULL
);
"""

_COMMUNITIES_DDL = """
CREATE TABLE IF NOT EXISTS communities (
    id                   TEXT PRIMARY KEY,
    name                 TEXT NOT NULL,
    description          TEXT,
    verification_method  TEXT NOT NULL,
    verification_data    TEXT,
    show_real_names      INTEGER NOT NULL DEFAULT 0,
    show_addresses       INTEGER NOT NULL DEFAULT 0,
    member_count         INTEGER NOT NULL DEFAULT 0,
    creator_id           TEXT NOT NULL,
    created_at           TEXT NOT NULL,

    FOREIGN KEY (creator_id) REFERENCES users(id)
);
"""

_COMMUNITY_MEMBERS_DDL = """
CREATE TABLE IF NOT EXISTS community_members (
    id            TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    community_id  TEXT NOT NULL,
    joined_at     TEXT NOT NULL,

    FOREIGN KEY (user_id) REFERENCES users(id),
    FOREIGN KEY (community_id) REFERENCES communities(id)
);
"""

_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    id             TEXT PRIMARY KEY,
    title          TEXT NOT NULL,
    description    TEXT NOT NULL,
    category       TEXT NOT NULL,
    reward         TEXT NOT NULL,
    time_estimate  TEXT,
    location       TEXT,
    status         TEXT NOT NULL DEFAULT 'open',
    author_id      TEXT NOT NULL,
    helper_id      TEXT,
    community_id   TEXT NOT NULL,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL,

    CHECK (helper_id IS NULL OR helper_id != author_id),
    FOREIGN KEY (author_id) REFERENCES users(id),
    FOREIGN KEY (helper_id) REFERENCES users(id),
    FOREIGN KEY (community_id) REFERENCES communities(id)
);
"""

_CONVERSATIONS_DDL = """
CREATE TABLE IF NOT EXISTS conversations (
    id               TEXT PRIMARY KEY,
    task_id          TEXT NOT NULL,
    author_id        TEXT NOT NULL,
    participant_id   TEXT NOT NULL,
    last_message_at  TEXT,
    created_at       TEXT NOT NULL,

    FOREIGN KEY (task_id) REFERENCES tasks(id),
    FOREIGN KEY (author_id) REFERENCES users(id),
    FOREIGN KEY (participant_id) REFERENCES users(id)
);
"""

# task_id 与 conversation_id 二者恰好其一非空
_MESSAGES_DDL = """
CREATE TABLE IF NOT EXISTS messages (
    id               TEXT PRIMARY KEY,
    content          TEXT NOT NULL,
    sender_id        TEXT NOT NULL,
    task_id          TEXT,
    conversation_id  TEXT,
    message_type     TEXT NOT NULL DEFAULT 'text',
    created_at       TEXT NOT NULL,

    CHECK ((task_id IS NULL) != (conversation_id IS NULL)),
    FOREIGN KEY (sender_id) REFERENCES users(id),
    FOREIGN KEY (task_id) REFERENCES tasks(id),
    FOREIGN KEY (conversation_id) REFERENCES conversations(id)
);
"""

_TRANSACTIONS_DDL = """
CREATE TABLE IF NOT EXISTS transactions (
    id                     TEXT PRIMARY KEY,
    task_id                TEXT NOT NULL,
    payer_id               TEXT NOT NULL,
    payee_id               TEXT NOT NULL,
    amount                 TEXT NOT NULL,
    status                 TEXT NOT NULL DEFAULT 'pending',
    payer_start_requested  INTEGER NOT NULL DEFAULT 0,
    payee_start_requested  INTEGER NOT NULL DEFAULT 0,
    payer_confirmed        INTEGER NOT NULL DEFAULT 0,
    payee_confirmed        INTEGER NOT NULL DEFAULT 0,
    cancelled              INTEGER NOT NULL DEFAULT 0,
    created_at             TEXT NOT NULL,
    completed_at           TEXT,

    CHECK (payer_id != payee_id),
    FOREIGN KEY (task_id) REFERENCES tasks(id),
    FOREIGN KEY (payer_id) REFERENCES users(id),
    FOREIGN KEY (payee_id) REFERENCES users(id)
);
"""

_RATINGS_DDL = """
CREATE TABLE IF NOT EXISTS ratings (
    id          TEXT PRIMARY KEY,
    task_id     TEXT NOT NULL,
    rater_id    TEXT NOT NULL,
    rated_id    TEXT NOT NULL,
    rating      INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
    comment     TEXT,
    created_at  TEXT NOT NULL,

    FOREIGN KEY (task_id) REFERENCES tasks(id),
    FOREIGN KEY (rater_id) REFERENCES users(id),
    FOREIGN KEY (rated_id) REFERENCES users(id)
);
"""

_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS events (
    event_id  TEXT PRIMARY KEY,
    task_id   TEXT NOT NULL,
    task_seq  INTEGER NOT NULL,
    ts        TEXT NOT NULL,
    type      TEXT NOT NULL,
    actor_id  TEXT NOT NULL,
    payload   TEXT NOT NULL DEFAULT '{}',

    FOREIGN KEY (task_id) REFERENCES tasks(id)
);
"""

_INDEXES = [
    # 成员关系唯一
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_members_user_community "
        "ON community_members(user_id, community_id);"
    ),
    "CREATE INDEX IF NOT EXISTS idx_members_community ON community_members(community_id);",
    "CREATE INDEX IF NOT EXISTS idx_communities_created_at ON communities(created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_community_status ON tasks(community_id, status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_author ON tasks(author_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_helper ON tasks(helper_id);",
    # 同一三元组至多一个会话
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_conversations_triple "
        "ON conversations(task_id, author_id, participant_id);"
    ),
    "CREATE INDEX IF NOT EXISTS idx_conversations_participant ON conversations(participant_id);",
    "CREATE INDEX IF NOT EXISTS idx_conversations_author ON conversations(author_id);",
    "CREATE INDEX IF NOT EXISTS idx_messages_task_ts ON messages(task_id, created_at);",
    (
        "CREATE INDEX IF NOT EXISTS idx_messages_conversation_ts "
        "ON messages(conversation_id, created_at);"
    ),
    # 每个任务至多一条未取消的交易
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_transactions_active_task "
        "ON transactions(task_id) WHERE status != 'cancelled';"
    ),
    "CREATE INDEX IF NOT EXISTS idx_transactions_task ON transactions(task_id, created_at);",
    # 每个 (task, rater) 至多一条评分
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_ratings_task_rater "
        "ON ratings(task_id, rater_id);"
    ),
    "CREATE INDEX IF NOT EXISTS idx_ratings_rated ON ratings(rated_id);",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_events_task_seq ON events(task_id, task_seq);",
]

_ALL_DDL = [
    _USERS_DDL,
    _COMMUNITIES_DDL,
    _COMMUNITY_MEMBERS_DDL,
    _TASKS_DDL,
    _CONVERSATIONS_DDL,
    _MESSAGES_DDL,
    _TRANSACTIONS_DDL,
    _RATINGS_DDL,
    _EVENTS_DDL,
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    for ddl in _ALL_DDL:
        await conn.execute(ddl)

    for idx_sql in _INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
