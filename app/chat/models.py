PROFILES_TABLE = "user_profiles"
ROOMS_TABLE = "chat_rooms"
MESSAGES_TABLE = "chat_messages"
READS_TABLE = "chat_reads"

READS_CONFLICT_KEY = "room_id,user_id"


chat_rooms_sql = """
CREATE TABLE chat_rooms (
    id BIGINT GENERATED ALWAYS AS IDENTITY PRIMARY KEY,

    user1_id UUID NOT NULL REFERENCES user_profiles(id) ON DELETE CASCADE,
    user2_id UUID NOT NULL REFERENCES user_profiles(id) ON DELETE CASCADE,

    last_message_text TEXT,
    last_message_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),

    -- Enforce canonical ordering
    CONSTRAINT user1_less_than_user2 CHECK (user1_id < user2_id),

    -- Ensure only one room per user pair
    CONSTRAINT unique_room_pair UNIQUE (user1_id, user2_id)
);
"""

chat_messages_sql = """
CREATE TABLE chat_messages (
    id BIGINT GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
    room_id BIGINT NOT NULL REFERENCES chat_rooms(id) ON DELETE CASCADE,
    sender_id UUID NOT NULL REFERENCES user_profiles(id) ON DELETE CASCADE,
    body TEXT NOT NULL CHECK (length(btrim(body)) > 0),
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX chat_messages_room_created_idx
    ON chat_messages (room_id, created_at DESC, id DESC);
"""

chat_reads_sql = """
CREATE TABLE chat_reads (
    room_id BIGINT NOT NULL REFERENCES chat_rooms(id) ON DELETE CASCADE,
    user_id UUID NOT NULL REFERENCES user_profiles(id) ON DELETE CASCADE,
    last_read_at TIMESTAMPTZ,
    PRIMARY KEY (room_id, user_id)
);
"""
