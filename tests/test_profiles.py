import os
from uuid import UUID

from sqlalchemy import select

from carelink.models.post import Post
from carelink.models.profile import Profile
from carelink.models.user import User


def test_get_and_update_my_profile(client, signup):
    _, headers = signup("jane.doe@example.com", full_name="Jane Doe")
    me = client.get("/profiles/me", headers=headers).json()
    assert me["username"] == "jane.doe"
    assert me["relationship"] == "self"
    assert me["badge"]["kind"] == "patient"

    res = client.put("/profiles/me", json={"bio": "Runner", "years_of_experience": 3}, headers=headers)
    assert res.status_code == 200
    assert res.json()["bio"] == "Runner"
    assert res.json()["years_of_experience"] == 3
    assert res.json()["username"] == "jane.doe"


def test_malformed_and_missing_profile_ids(client, signup):
    _, headers = signup("jane@example.com")
    res = client.get("/profiles/not-a-uuid", headers=headers)
    assert res.status_code == 404
    assert res.json()["detail"] == "Profile not found"
    assert client.get("/profiles/00000000-0000-0000-0000-000000000000", headers=headers).status_code == 404


def test_search_profiles(client, signup):
    _, headers = signup("jane@example.com", full_name="Jane Smith")
    signup("john@example.com", full_name="John Smith")
    signup("kate@example.com", full_name="Kate Brown")

    names = [p["full_name"] for p in client.get("/profiles/search?q=smith", headers=headers).json()]
    assert names == ["Jane Smith", "John Smith"]
    assert client.get("/profiles/search?q=", headers=headers).json() == []


def test_search_treats_wildcards_literally(client, signup):
    _, headers = signup("jane_doe@example.com", full_name="Jane Doe")
    signup("janexdoe@example.com", full_name="Jane X")

    usernames = [p["username"] for p in client.get("/profiles/search?q=e_d", headers=headers).json()]
    assert usernames == ["jane_doe"]
    assert client.get("/profiles/search?q=%25", headers=headers).json() == []


def test_missing_profile_is_recreated(client, signup, db):
    user_id, headers = signup("jane@example.com")
    db.delete(db.execute(select(Profile).where(Profile.user_id == UUID(user_id))).scalar_one())
    db.commit()

    me = client.get("/profiles/me", headers=headers).json()
    assert me["user_id"] == user_id
    assert me["username"] == "jane"


def test_user_posts(client, signup):
    jane_id, jane = signup("jane@example.com")
    _, john = signup("john@example.com")
    client.post("/posts", json={"content": "mine"}, headers=jane)
    client.post("/posts", json={"content": "his"}, headers=john)

    posts = client.get(f"/profiles/{jane_id}/posts", headers=john).json()
    assert [p["content"] for p in posts] == ["mine"]


def test_delete_own_account_removes_everything(client, signup, db, store):
    doc_id, doc = signup("doc@example.com", role="doctor")
    _, other = signup("other@example.com")
    client.post("/posts", json={"content": "bye"}, headers=doc)
    client.post(f"/messages/{doc_id}", json={"content": "hi"}, headers=other)
    client.post(
        "/api/doctor/upload-verification",
        headers=doc,
        files={"file": ("id.png", b"\x89PNG" + b"0" * 100, "image/png")},
    )

    res = client.post("/api/delete-account", json={"userId": doc_id}, headers=other)
    assert res.status_code == 403

    res = client.post("/api/delete-account", json={"userId": doc_id}, headers=doc)
    assert res.status_code == 200
    assert res.json() == {"success": True}

    uid = UUID(doc_id)
    assert db.get(User, uid) is None
    assert db.execute(select(Post).where(Post.user_id == uid)).scalars().all() == []
    assert not os.path.exists(os.path.join(store.root, "doctor-verifications", doc_id))
    assert client.get("/profiles/me", headers=doc).status_code == 401


def test_admin_can_delete_any_account(client, signup, admin):
    user_id, _ = signup("jane@example.com")
    _, admin_headers = admin
    res = client.post("/api/delete-account", json={"userId": user_id}, headers=admin_headers)
    assert res.status_code == 200
    audit = client.get("/admin/audit?action=ACCOUNT_DELETED", headers=admin_headers).json()
    assert [entry["entity_id"] for entry in audit] == [user_id]
