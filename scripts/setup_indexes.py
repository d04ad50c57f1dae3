import sys
import os
import asyncio
from pymongo import ASCENDING, DESCENDING

# Add parent directory to path to import database
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import notifications_collection, projects_collection, tasks_collection, users_collection, teams_collection, features_collection, functions_collection
from logging_config import get_logger

logger = get_logger("setup_indexes")

async def create_indexes():
    print("🚀 Starting Index Creation...")

    # --- Notifications ---
    print("\n📦 Notifications Collection:")
    # For Inbox + Unread Count: find({user_id: X, status: Unread}).sort(created_at: -1)
    await notifications_collection.create_index([("user_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)])
    print("✅ Created index: (user_id, status, created_at DESC)")

    # For Type Filter: find({user_id: X, type: Y}).sort(created_at: -1)
    await notifications_collection.create_index([("user_id", ASCENDING), ("type", ASCENDING), ("created_at", DESCENDING)])
    print("✅ Created index: (user_id, type, created_at DESC)")

    # For Deadline Reminder Dedup: find_one({task_id, action, status, created_at >= since})
    await notifications_collection.create_index([("task_id", ASCENDING), ("action", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)])
    print("✅ Created index: (task_id, action, status, created_at DESC)")

    await notifications_collection.create_index([("id", ASCENDING)], unique=True)
    print("✅ Created index: (id UNIQUE)")

    # --- Projects ---
    print("\n📦 Projects Collection:")
    await projects_collection.create_index([("id", ASCENDING)], unique=True)
    print("✅ Created index: (id UNIQUE)")

    await projects_collection.create_index([("code", ASCENDING)], unique=True)
    print("✅ Created index: (code UNIQUE)")

    await projects_collection.create_index([("created_by", ASCENDING), ("semester", ASCENDING)])
    print("✅ Created index: (created_by, semester)")

    # --- Teams ---
    print("\n📦 Teams Collection:")
    # For Membership Checks: find_one({project_id: X, team_member.user_id: Y})
    await teams_collection.create_index([("project_id", ASCENDING), ("team_member.user_id", ASCENDING)])
    print("✅ Created index: (project_id, team_member.user_id)")

    await teams_collection.create_index([("team_code", ASCENDING)], unique=True)
    print("✅ Created index: (team_code UNIQUE)")

    # --- Features / Functions ---
    print("\n📦 Features & Functions Collections:")
    await features_collection.create_index([("project_id", ASCENDING)])
    print("✅ Created index: features (project_id)")

    await functions_collection.create_index([("feature_id", ASCENDING)])
    print("✅ Created index: functions (feature_id)")

    # --- Tasks ---
    print("\n📦 Tasks Collection:")
    # For Deadline Scans: find({deadline: range, status: {$nin: terminal}})
    await tasks_collection.create_index([("deadline", ASCENDING), ("status", ASCENDING)])
    print("✅ Created index: (deadline, status)")

    await tasks_collection.create_index([("function_id", ASCENDING)])
    print("✅ Created index: (function_id)")

    # For My Tasks: find({assignee_id: X})
    await tasks_collection.create_index([("assignee_id", ASCENDING)])
    print("✅ Created index: (assignee_id)")

    # --- Users ---
    print("\n📦 Users Collection:")
    # Email lookup is frequent for auth
    await users_collection.create_index([("email", ASCENDING)], unique=True)
    print("✅ Created index: (email UNIQUE)")

    await users_collection.create_index([("id", ASCENDING)], unique=True)
    print("✅ Created index: (id UNIQUE)")

    print("\n✨ All indexes created successfully!")

if __name__ == "__main__":
    # Ensure event loop for async driver
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    loop.run_until_complete(create_indexes())
