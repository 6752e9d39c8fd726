from quickvibe.core.config import settings

API = settings.API_V1_STR


def _project(client, headers, **kwargs):
    payload = {"name": "Shared", "project_type": "WEBSITE", "current_code": "<html></html>"}
    payload.update(kwargs)
    return client.post(f"{API}/projects/save", json=payload, headers=headers).json()["id"]


def test_invite_accept_and_members(client, user_headers, other_headers, other_user):
    project_id = _project(client, user_headers)

    r = client.post(
        f"{API}/collab/invite",
        json={"project_id": project_id, "email": other_user.email, "role": "EDITOR", "message": "join us"},
        headers=user_headers,
    )
    assert r.status_code == 200
    invite = r.json()
    assert invite["project_name"] == "Shared"
    assert invite["status"] == "PENDING"

    r = client.post(
        f"{API}/collab/invite", json={"project_id": project_id, "email": other_user.email}, headers=user_headers
    )
    assert r.status_code == 400

    r = client.get(f"{API}/collab/invites", headers=other_headers)
    assert [i["id"] for i in r.json()] == [invite["id"]]

    r = client.post(
        f"{API}/collab/respond", json={"invite_id": invite["id"], "action": "accept"}, headers=other_headers
    )
    assert r.status_code == 200
    assert r.json()["status"] == "ACCEPTED"

    r = client.get(f"{API}/collab/members", params={"project_id": project_id}, headers=other_headers)
    assert [m["role"] for m in r.json()] == ["OWNER", "EDITOR"]

    r = client.get(f"{API}/projects/{project_id}", headers=other_headers)
    assert r.status_code == 200

    r = client.delete(
        f"{API}/collab/members",
        params={"project_id": project_id, "user_id": str(other_user.id)},
        headers=user_headers,
    )
    assert r.status_code == 200
    assert client.get(f"{API}/projects/{project_id}", headers=other_headers).status_code == 403


def test_outsider_cannot_invite(client, user_headers, other_headers):
    project_id = _project(client, user_headers)
    r = client.post(
        f"{API}/collab/invite", json={"project_id": project_id, "email": "x@example.com"}, headers=other_headers
    )
    assert r.status_code == 403


def test_respond_to_someone_elses_invite(client, user_headers, other_user, user_factory, headers_for):
    project_id = _project(client, user_headers)
    invite_id = client.post(
        f"{API}/collab/invite", json={"project_id": project_id, "email": other_user.email}, headers=user_headers
    ).json()["id"]
    stranger = user_factory("stranger@example.com")

    r = client.post(
        f"{API}/collab/respond",
        json={"invite_id": invite_id, "action": "accept"},
        headers=headers_for(stranger),
    )
    assert r.status_code == 403


def test_discover_lists_only_public(client, user_headers):
    _project(client, user_headers, name="Hidden")
    public_id = _project(client, user_headers, name="Visible", visibility="PUBLIC")

    r = client.get(f"{API}/discover/")
    assert r.status_code == 200
    body = r.json()
    assert [item["id"] for item in body["data"]] == [public_id]
    assert body["data"][0]["preview"] == "<html></html>"
    assert body["pagination"] == {"page": 1, "limit": 12, "total": 1, "total_pages": 1, "has_more": False}

    assert client.get(f"{API}/discover/", params={"sort": "weird"}).status_code == 422
    assert client.get(f"{API}/discover/", params={"category": "game"}).json()["data"] == []
