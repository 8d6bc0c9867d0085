"""Tests for bid submission and the open -> closed transition."""

import pytest

import marketplace.bids as bids_module

BID = {"amount": 8000, "message": "I can start Monday"}


@pytest.fixture
def open_job(client, signup, job_payload):
    _, headers = signup("client")
    return client.post("/jobs", json=job_payload, headers=headers).json()


def _job(client, job_id):
    return client.get(f"/jobs/{job_id}").json()


class TestSubmitBid:
    def test_bid_is_pending_and_counted(self, client, signup, open_job):
        pro_id, headers = signup("freelancer")

        resp = client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers)

        assert resp.status_code == 201
        bid = resp.json()
        assert bid["status"] == "pending"
        assert bid["professional_id"] == pro_id
        assert bid["amount"] == 8000
        job = _job(client, open_job["id"])
        assert job["current_bids"] == 1
        assert job["status"] == "open"
        assert [b["id"] for b in job["bids"]] == [bid["id"]]

    def test_bidding_is_free(self, client, signup, open_job):
        _, headers = signup("freelancer")
        client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers)
        assert client.get("/users/me", headers=headers).json()["credits"] == 10

    def test_client_cannot_bid(self, client, signup, open_job):
        _, headers = signup("client")

        resp = client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers)

        assert resp.status_code == 403
        assert _job(client, open_job["id"])["current_bids"] == 0

    def test_both_role_can_bid(self, client, signup, open_job):
        _, headers = signup("both")
        assert client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers).status_code == 201

    def test_duplicate_bid(self, client, signup, open_job):
        _, headers = signup("freelancer")
        client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers)

        resp = client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers)

        assert resp.status_code == 409
        assert "already submitted" in resp.json()["error"]
        assert _job(client, open_job["id"])["current_bids"] == 1

    def test_unknown_job(self, client, signup):
        _, headers = signup("freelancer")
        resp = client.post("/jobs/nope/bids", json=BID, headers=headers)
        assert resp.status_code == 404

    def test_negative_amount_rejected(self, client, signup, open_job):
        _, headers = signup("freelancer")
        resp = client.post(f"/jobs/{open_job['id']}/bids", json={"amount": -1}, headers=headers)
        assert resp.status_code == 422

    def test_my_bids(self, client, signup, open_job):
        _, headers = signup("freelancer")
        client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers)

        mine = client.get("/bids/me", headers=headers).json()

        assert len(mine) == 1
        assert mine[0]["job_id"] == open_job["id"]
        assert mine[0]["job_status"] == "open"


class TestBidCap:
    def test_client_posts_and_three_bids_close_the_job(self, client, signup, job_payload):
        _, client_headers = signup("client")
        assert client.get("/users/me", headers=client_headers).json()["credits"] == 25

        job = client.post("/jobs", json=job_payload, headers=client_headers).json()
        assert client.get("/users/me", headers=client_headers).json()["credits"] == 20
        assert job["status"] == "open"
        assert job["current_bids"] == 0

        for n in range(1, 4):
            _, headers = signup("freelancer")
            assert client.post(f"/jobs/{job['id']}/bids", json=BID, headers=headers).status_code == 201
            state = _job(client, job["id"])
            assert state["current_bids"] == n
            # closes exactly when the cap is reached, never before
            assert state["status"] == ("closed" if n == 3 else "open")

        _, late_headers = signup("freelancer")
        resp = client.post(f"/jobs/{job['id']}/bids", json=BID, headers=late_headers)

        assert resp.status_code == 409
        assert "maximum number of proposals" in resp.json()["error"]
        state = _job(client, job["id"])
        assert state["current_bids"] == 3
        assert len(state["bids"]) == 3

    def test_lost_race_does_not_overshoot_cap(self, client, signup, open_job, monkeypatch):
        for _ in range(3):
            _, headers = signup("freelancer")
            client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers)

        # the precondition read sees the job as it was before the last slot went
        real_load = bids_module._load_job
        calls = {"n": 0}

        async def _stale_then_real(db, job_id):
            calls["n"] += 1
            job = await real_load(db, job_id)
            if calls["n"] == 1:
                return {**job, "status": "open", "current_bids": job["max_bids"] - 1}
            return job

        monkeypatch.setattr(bids_module, "_load_job", _stale_then_real)
        _, headers = signup("freelancer")
        resp = client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers)

        assert resp.status_code == 409
        assert "maximum number of proposals" in resp.json()["error"]
        state = _job(client, open_job["id"])
        assert state["current_bids"] == 3
        assert len(state["bids"]) == 3

    def test_racing_duplicate_rolls_back_slot(self, client, signup, open_job, monkeypatch):
        _, headers = signup("freelancer")
        client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers)

        async def _never_seen(db, job_id, professional_id):
            return False

        monkeypatch.setattr(bids_module, "_has_bid", _never_seen)
        resp = client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers)

        assert resp.status_code == 409
        assert "already submitted" in resp.json()["error"]
        assert _job(client, open_job["id"])["current_bids"] == 1

    def test_completed_job_reports_closed(self, client, signup, open_job, monkeypatch):
        real_load = bids_module._load_job

        async def _completed(db, job_id):
            return {**(await real_load(db, job_id)), "status": "completed"}

        monkeypatch.setattr(bids_module, "_load_job", _completed)
        _, headers = signup("freelancer")
        resp = client.post(f"/jobs/{open_job['id']}/bids", json=BID, headers=headers)

        assert resp.status_code == 409
        assert "no longer accepting" in resp.json()["error"]
