def _post(client, headers, content="Hello world"):
    res = client.post("/posts", json={"content": content}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def test_create_post_carries_author_badge(client, signup):
    _, headers = signup("doc@example.com", role="doctor", full_name="Dr Strange")
    post = _post(client, headers)
    assert post["author"]["full_name"] == "Dr Strange"
    assert post["author"]["badge"]["kind"] == "unverified_doctor"
    assert post["author"]["is_verified"] is False


def test_empty_post_is_rejected(client, signup):
    _, headers = signup("pat@example.com")
    res = client.post("/posts", json={"content": "   "}, headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "Post cannot be empty"


def test_toggle_like_twice_restores_state(client, signup):
    _, author = signup("author@example.com")
    _, reader = signup("reader@example.com")
    post = _post(client, author)

    first = client.post(f"/posts/{post['id']}/like", headers=reader).json()
    assert first == {"liked": True, "like_count": 1}
    second = client.post(f"/posts/{post['id']}/like", headers=reader).json()
    assert second == {"liked": False, "like_count": 0}

    feed = client.get("/posts", headers=reader).json()
    assert feed[0]["like_count"] == 0
    assert feed[0]["liked_by_me"] is False


def test_feed_is_newest_first_with_counts(client, signup):
    _, author = signup("author@example.com")
    _, reader = signup("reader@example.com")
    older = _post(client, author, "first")
    newer = _post(client, author, "second")
    client.post(f"/posts/{older['id']}/like", headers=reader)
    client.post(f"/posts/{older['id']}/comments", json={"content": "Nice"}, headers=reader)

    feed = client.get("/posts", headers=reader).json()
    assert [p["id"] for p in feed] == [newer["id"], older["id"]]
    assert feed[1]["like_count"] == 1
    assert feed[1]["comment_count"] == 1
    assert feed[1]["liked_by_me"] is True


def test_comments(client, signup):
    _, author = signup("author@example.com")
    _, reader = signup("reader@example.com", full_name="Reader")
    post = _post(client, author)

    assert client.post(f"/posts/{post['id']}/comments", json={"content": ""}, headers=reader).status_code == 400
    res = client.post(f"/posts/{post['id']}/comments", json={"content": "Get well soon"}, headers=reader)
    assert res.status_code == 201
    comments = client.get(f"/posts/{post['id']}/comments", headers=author).json()
    assert [c["content"] for c in comments] == ["Get well soon"]
    assert comments[0]["author"]["full_name"] == "Reader"


def test_only_owner_deletes_post(client, signup):
    _, author = signup("author@example.com")
    _, reader = signup("reader@example.com")
    post = _post(client, author)

    res = client.delete(f"/posts/{post['id']}", headers=reader)
    assert res.status_code == 403
    assert res.json()["detail"] == "You can only delete your own posts"

    assert client.delete(f"/posts/{post['id']}", headers=author).status_code == 204
    assert client.get("/posts", headers=author).json() == []
    assert client.post(f"/posts/{post['id']}/like", headers=reader).status_code == 404
