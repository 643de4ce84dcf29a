"""PostgreSQL schema registry for the backend.

Every table the application knows about is declared here once, tagged as
required (the app cannot start without it) or optional (some features are
unavailable without it). Declaration order is the order used for checks and
reports.

The DDL text is applied only by explicit initialization. Verification never
creates anything.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple


@dataclass(frozen=True)
class TableDefinition:
    """One expected table."""

    name: str
    description: str
    required: bool
    create_statement: str


class SchemaRegistry:
    """Immutable, ordered collection of table definitions."""

    def __init__(self, definitions: Iterable[TableDefinition]):
        definitions = tuple(definitions)
        seen = set()
        for definition in definitions:
            if definition.name in seen:
                raise ValueError(f"Duplicate table in schema registry: {definition.name!r}")
            seen.add(definition.name)

        self._required = tuple(d for d in definitions if d.required)
        self._optional = tuple(d for d in definitions if not d.required)
        self._by_name = {d.name: d for d in definitions}

    def required_tables(self) -> Tuple[TableDefinition, ...]:
        return self._required

    def optional_tables(self) -> Tuple[TableDefinition, ...]:
        return self._optional

    def all_tables(self) -> Tuple[TableDefinition, ...]:
        """Required tables first, then optional ones, each in declaration order."""
        return self._required + self._optional

    def names(self) -> Tuple[str, ...]:
        return tuple(d.name for d in self.all_tables())

    def get(self, name: str) -> Optional[TableDefinition]:
        return self._by_name.get(name)

    def __len__(self) -> int:
        return len(self._by_name)

    def __iter__(self) -> Iterator[TableDefinition]:
        return iter(self.all_tables())

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __repr__(self) -> str:
        return (
            f"SchemaRegistry(required={len(self._required)}, "
            f"optional={len(self._optional)})"
        )


# ── Required tables ─────────────────────────────────────────────────────────

CREATE_USERS_TABLE = """
CREATE TABLE IF NOT EXISTS users (
  id SERIAL PRIMARY KEY,
  username VARCHAR(255) UNIQUE,
  email VARCHAR(255) UNIQUE,
  phone VARCHAR(20) UNIQUE,
  password_hash VARCHAR(255),
  full_name VARCHAR(255),
  profile_picture TEXT,
  is_active BOOLEAN DEFAULT TRUE,
  is_verified BOOLEAN DEFAULT FALSE,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_users_email ON users(email);
CREATE INDEX IF NOT EXISTS idx_users_phone ON users(phone);
CREATE INDEX IF NOT EXISTS idx_users_username ON users(username);
"""

CREATE_SESSIONS_TABLE = """
CREATE TABLE IF NOT EXISTS sessions (
  id SERIAL PRIMARY KEY,
  token VARCHAR(255) UNIQUE NOT NULL,
  user_id INTEGER,
  is_logged_in BOOLEAN DEFAULT FALSE,
  metadata JSONB DEFAULT '{}',
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  expires_at TIMESTAMP NOT NULL,
  last_activity_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_sessions_token ON sessions(token);
CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id);
CREATE INDEX IF NOT EXISTS idx_sessions_expires_at ON sessions(expires_at);
"""

CREATE_USER_IDENTIFIERS_TABLE = """
CREATE TABLE IF NOT EXISTS user_identifiers (
  id SERIAL PRIMARY KEY,
  user_id INTEGER NOT NULL,
  identifier_type VARCHAR(20) NOT NULL, -- 'email', 'phone', 'username'
  identifier_value VARCHAR(255) NOT NULL,
  is_verified BOOLEAN DEFAULT FALSE,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
  UNIQUE (identifier_type, identifier_value)
);
"""

CREATE_ROLES_TABLE = """
CREATE TABLE IF NOT EXISTS roles (
  id SERIAL PRIMARY KEY,
  name VARCHAR(50) UNIQUE NOT NULL,
  description TEXT,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_PERMISSIONS_TABLE = """
CREATE TABLE IF NOT EXISTS permissions (
  id SERIAL PRIMARY KEY,
  name VARCHAR(100) UNIQUE NOT NULL,
  description TEXT,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_USER_GROUPS_TABLE = """
CREATE TABLE IF NOT EXISTS user_groups (
  id SERIAL PRIMARY KEY,
  user_id INTEGER NOT NULL,
  role_id INTEGER NOT NULL,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
  FOREIGN KEY (role_id) REFERENCES roles(id) ON DELETE CASCADE,
  UNIQUE (user_id, role_id)
);
"""

# ── Optional tables ─────────────────────────────────────────────────────────

CREATE_MESSAGE_THREADS_TABLE = """
CREATE TABLE IF NOT EXISTS message_threads (
  id SERIAL PRIMARY KEY,
  subject VARCHAR(255),
  created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
  is_archived BOOLEAN DEFAULT FALSE,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_MESSAGES_TABLE = """
CREATE TABLE IF NOT EXISTS messages (
  id SERIAL PRIMARY KEY,
  thread_id INTEGER NOT NULL REFERENCES message_threads(id) ON DELETE CASCADE,
  sender_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
  content TEXT NOT NULL,
  attachments JSONB DEFAULT '[]',
  is_read BOOLEAN DEFAULT FALSE,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_messages_thread_id ON messages(thread_id);
"""

CREATE_PARTICIPANTS_TABLE = """
CREATE TABLE IF NOT EXISTS participants (
  id SERIAL PRIMARY KEY,
  thread_id INTEGER NOT NULL REFERENCES message_threads(id) ON DELETE CASCADE,
  user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  last_read_at TIMESTAMP,
  UNIQUE (thread_id, user_id)
);
"""

CREATE_APPOINTMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS appointments (
  id SERIAL PRIMARY KEY,
  patient_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  psychologist_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  scheduled_at TIMESTAMP NOT NULL,
  duration INTEGER NOT NULL DEFAULT 60,
  status VARCHAR(50) NOT NULL DEFAULT 'pending',
  notes TEXT,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_appointments_scheduled_at ON appointments(scheduled_at);
"""

CREATE_COURSES_TABLE = """
CREATE TABLE IF NOT EXISTS courses (
  id SERIAL PRIMARY KEY,
  title VARCHAR(255) NOT NULL,
  description TEXT,
  instructor_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
  is_published BOOLEAN DEFAULT FALSE,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_ENROLLMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS enrollments (
  id SERIAL PRIMARY KEY,
  user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  course_id INTEGER NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
  enrolled_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  completed_at TIMESTAMP,
  UNIQUE (user_id, course_id)
);
"""

CREATE_PROGRESS_TABLE = """
CREATE TABLE IF NOT EXISTS progress (
  id SERIAL PRIMARY KEY,
  enrollment_id INTEGER NOT NULL REFERENCES enrollments(id) ON DELETE CASCADE,
  lesson_key VARCHAR(100) NOT NULL,
  percent_complete INTEGER DEFAULT 0,
  updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  UNIQUE (enrollment_id, lesson_key)
);
"""

CREATE_ASSESSMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS assessments (
  id SERIAL PRIMARY KEY,
  title VARCHAR(255) NOT NULL,
  description TEXT,
  questions JSONB DEFAULT '[]',
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_ASSESSMENT_RESULTS_TABLE = """
CREATE TABLE IF NOT EXISTS assessment_results (
  id SERIAL PRIMARY KEY,
  assessment_id INTEGER NOT NULL REFERENCES assessments(id) ON DELETE CASCADE,
  user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  answers JSONB DEFAULT '{}',
  score NUMERIC(6, 2),
  completed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_PAYMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS payments (
  id SERIAL PRIMARY KEY,
  user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  amount NUMERIC(12, 2) NOT NULL,
  currency VARCHAR(3) DEFAULT 'IRR',
  status VARCHAR(20) DEFAULT 'pending',
  gateway_reference VARCHAR(255),
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_TRANSACTIONS_TABLE = """
CREATE TABLE IF NOT EXISTS transactions (
  id SERIAL PRIMARY KEY,
  payment_id INTEGER REFERENCES payments(id) ON DELETE SET NULL,
  user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  kind VARCHAR(20) NOT NULL, -- 'charge', 'refund', 'payout'
  amount NUMERIC(12, 2) NOT NULL,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""


TABLE_DEFINITIONS = (
    # Each create_statement only references tables declared above it
    TableDefinition("users", "User accounts and profile information", True, CREATE_USERS_TABLE),
    TableDefinition("sessions", "User sessions and authentication tokens", True, CREATE_SESSIONS_TABLE),
    TableDefinition("user_identifiers", "User identification methods (phone, email)", True, CREATE_USER_IDENTIFIERS_TABLE),
    TableDefinition("roles", "User roles and their permissions", True, CREATE_ROLES_TABLE),
    TableDefinition("permissions", "System permissions", True, CREATE_PERMISSIONS_TABLE),
    TableDefinition("user_groups", "User role groups (admin, therapist, client)", True, CREATE_USER_GROUPS_TABLE),
    # Optional
    TableDefinition("message_threads", "Message conversation threads", False, CREATE_MESSAGE_THREADS_TABLE),
    TableDefinition("messages", "Direct messages between users", False, CREATE_MESSAGES_TABLE),
    TableDefinition("participants", "Thread participants", False, CREATE_PARTICIPANTS_TABLE),
    TableDefinition("appointments", "Scheduled appointments", False, CREATE_APPOINTMENTS_TABLE),
    TableDefinition("courses", "Educational courses", False, CREATE_COURSES_TABLE),
    TableDefinition("enrollments", "User course enrollments", False, CREATE_ENROLLMENTS_TABLE),
    TableDefinition("progress", "User course progress tracking", False, CREATE_PROGRESS_TABLE),
    TableDefinition("assessments", "Mental health assessments", False, CREATE_ASSESSMENTS_TABLE),
    TableDefinition("assessment_results", "Assessment results and scores", False, CREATE_ASSESSMENT_RESULTS_TABLE),
    TableDefinition("payments", "Payment records", False, CREATE_PAYMENTS_TABLE),
    TableDefinition("transactions", "Financial transactions", False, CREATE_TRANSACTIONS_TABLE),
)

DEFAULT_REGISTRY = SchemaRegistry(TABLE_DEFINITIONS)

REQUIRED_TABLES = DEFAULT_REGISTRY.required_tables()
OPTIONAL_TABLES = DEFAULT_REGISTRY.optional_tables()
ALL_TABLES = DEFAULT_REGISTRY.all_tables()
