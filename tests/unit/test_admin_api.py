from datetime import date

import pytest

from busline.models.models import Booking, PAID, REJECTED


def booking_body(route, bus, seats, phone="0244123456", referral_code=None):
    return {
        "name": "Abena Owusu",
        "phone": phone,
        "route_id": route.id,
        "bus_id": bus.id,
        "date": "2024-08-15",
        "seats": seats,
        "referral_code": referral_code,
    }


@pytest.fixture
async def pending_booking(client, make_journey):
    route, bus = await make_journey(capacity=10)
    resp = await client.post("/bookings", json=booking_body(route, bus, ["1", "2"]))
    assert resp.status_code == 201, resp.text
    return route, bus, resp.json()["booking"]


async def test_admin_routes_need_a_token(client):
    assert (await client.get("/admin/bookings")).status_code == 401
    bad = await client.get("/admin/bookings", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401


async def test_approve_unapprove_and_reject(client, admins, auth_headers, pending_booking):
    admin, _ = admins
    headers = auth_headers(admin)
    _, _, booking = pending_booking
    booking_id = booking["id"]

    approved = await client.post(f"/admin/bookings/{booking_id}/approve", headers=headers)
    assert approved.json()["changed"] is True
    assert approved.json()["booking"]["status"] == "approved"

    again = await client.post(f"/admin/bookings/{booking_id}/approve", headers=headers)
    assert again.json() == {"changed": False, "booking": None}

    back = await client.post(f"/admin/bookings/{booking_id}/unapprove", headers=headers)
    assert back.json()["booking"]["status"] == "pending"

    rejected = await client.post(f"/admin/bookings/{booking_id}/reject", json={"reason": "Customer called to cancel"}, headers=headers)
    assert rejected.json()["booking"]["status"] == REJECTED
    assert rejected.json()["booking"]["rejection_reason"] == "Customer called to cancel"

    listed = await client.get("/admin/bookings", params={"status": REJECTED}, headers=headers)
    assert [b["id"] for b in listed.json()] == [booking_id]

    trail = await client.get(f"/admin/bookings/{booking_id}/audit", headers=headers)
    assert [(e["action"], e["actor_id"]) for e in trail.json()] == [
        ("approve_booking", admin.id),
        ("unapprove_booking", admin.id),
        ("reject_booking", admin.id),
    ]
    assert trail.json()[-1]["detail"]["reason"] == "Customer called to cancel"


async def test_mark_paid_then_release_seat(client, admins, auth_headers, pending_booking, fetch):
    admin, _ = admins
    headers = auth_headers(admin)
    route, bus, booking = pending_booking

    paid = await client.post(f"/admin/bookings/{booking['id']}/mark-paid", headers=headers)
    assert paid.json()["booking"]["status"] == PAID
    assert paid.json()["booking"]["payment_method"] == "manual"

    smap = await client.get("/admin/seat-map", params={"bus_id": bus.id, "route_id": route.id, "date": "2024-08-15"}, headers=headers)
    states = {s["number"]: s["state"] for s in smap.json()["seats"]}
    assert states["1"] == states["2"] == "occupied"
    assert states["3"] == "free"

    released = await client.post(f"/admin/bookings/{booking['id']}/release-seat", headers=headers)
    assert released.json()["booking"]["status"] == REJECTED
    assert released.json()["booking"]["rejection_reason"].startswith("Manually cancelled by admin on ")
    assert (await fetch(Booking, booking["id"])).status == REJECTED


async def test_purge_paid_booking_requires_super_admin(client, admins, auth_headers, pending_booking, fetch):
    admin, super_admin = admins
    _, _, booking = pending_booking
    await client.post(f"/admin/bookings/{booking['id']}/mark-paid", headers=auth_headers(admin))

    denied = await client.delete(f"/admin/bookings/{booking['id']}", headers=auth_headers(admin))
    assert denied.status_code == 403

    deleted = await client.delete(f"/admin/bookings/{booking['id']}", headers=auth_headers(super_admin))
    assert deleted.status_code == 204
    assert await fetch(Booking, booking["id"]) is None

    missing = await client.delete(f"/admin/bookings/{booking['id']}", headers=auth_headers(super_admin))
    assert missing.status_code == 404


async def test_manual_sweep_endpoint(client, admins, auth_headers):
    admin, _ = admins
    resp = await client.post("/admin/sweep", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json() == {"released": 0}


async def test_catalog_management(client, admins, auth_headers):
    admin, _ = admins
    headers = auth_headers(admin)

    region = await client.post("/admin/regions", json={"name": "Ashanti"}, headers=headers)
    assert region.status_code == 201
    duplicate = await client.post("/admin/regions", json={"name": "Ashanti"}, headers=headers)
    assert duplicate.status_code == 400

    route = await client.post(
        "/admin/routes",
        json={"pickup": "Kumasi", "destination": "Accra", "price": "80.00", "region_id": region.json()["id"]},
        headers=headers,
    )
    assert route.status_code == 201
    bad_price = await client.post("/admin/routes", json={"pickup": "A", "destination": "B", "price": "0"}, headers=headers)
    assert bad_price.status_code == 422

    bus = await client.post("/admin/buses", json={"number_plate": "AS-100-24", "capacity": 30}, headers=headers)
    assert bus.status_code == 201
    patched = await client.patch(f"/admin/buses/{bus.json()['id']}", json={"active": False}, headers=headers)
    assert patched.json()["active"] is False
    assert (await client.get("/catalog/buses")).json() == []
    assert len((await client.get("/admin/buses", headers=headers)).json()) == 1

    fare = await client.patch(f"/admin/routes/{route.json()['id']}", json={"price": "95.50"}, headers=headers)
    assert fare.status_code == 200
    assert fare.json()["price"] == "95.50"
    assert (await client.patch("/admin/routes/9999", json={"price": "10"}, headers=headers)).status_code == 404

    assert (await client.delete(f"/admin/buses/{bus.json()['id']}", headers=headers)).status_code == 204
    assert (await client.delete(f"/admin/buses/{bus.json()['id']}", headers=headers)).status_code == 404


async def test_session_scheduling_is_a_cartesian_product(client, admins, auth_headers, make_journey):
    admin, _ = admins
    headers = auth_headers(admin)
    first_route, bus = await make_journey(days=())
    second_route, _ = await make_journey(plate="GW-22-23", destination="Takoradi", days=())

    created = await client.post(
        "/admin/sessions",
        json={
            "name": "August weekend",
            "route_ids": [first_route.id, second_route.id],
            "bus_ids": [bus.id],
            "departure_dates": ["2024-08-15", "2024-08-16"],
        },
        headers=headers,
    )
    assert created.status_code == 201
    assert len(created.json()) == 4

    repeat = await client.post(
        "/admin/sessions",
        json={"route_ids": [first_route.id], "bus_ids": [bus.id], "departure_dates": ["2024-08-15"]},
        headers=headers,
    )
    assert repeat.status_code == 400

    listed = await client.get("/catalog/sessions", params={"route_id": first_route.id})
    assert [s["departure_date"] for s in listed.json()] == ["2024-08-15", "2024-08-16"]

    session_id = listed.json()[0]["id"]
    smap = await client.get(f"/admin/sessions/{session_id}/seat-map", headers=headers)
    assert smap.status_code == 200
    assert smap.json()["journey_date"] == str(date(2024, 8, 15))
    assert len(smap.json()["seats"]) == 50


async def test_booking_opens_once_the_departure_is_scheduled(client, admins, auth_headers, make_journey):
    admin, _ = admins
    route, bus = await make_journey(days=())

    closed = await client.post("/bookings", json=booking_body(route, bus, ["1"]))
    assert closed.status_code == 400
    assert closed.json()["detail"] == "No scheduled departure for this journey"

    scheduled = await client.post(
        "/admin/sessions",
        json={"route_ids": [route.id], "bus_ids": [bus.id], "departure_dates": ["2024-08-15"]},
        headers=auth_headers(admin),
    )
    assert scheduled.status_code == 201

    opened = await client.post("/bookings", json=booking_body(route, bus, ["1"]))
    assert opened.status_code == 201


async def test_referral_tracking(client, admins, auth_headers, make_journey):
    admin, _ = admins
    headers = auth_headers(admin)
    route, bus = await make_journey()

    referral = await client.post("/admin/referrals", json={"name": "Kojo Promoter", "phone": "0277000111"}, headers=headers)
    assert referral.status_code == 201
    idle = await client.post("/admin/referrals", json={"name": "Idle Promoter", "phone": "0277000222"}, headers=headers)
    assert (await client.post("/admin/referrals", json={"name": "Dup", "phone": "0277000111"}, headers=headers)).status_code == 400

    created = await client.post("/bookings", json=booking_body(route, bus, ["5"], referral_code="0277000111"))
    booking = created.json()["booking"]
    assert booking["referral_id"] == referral.json()["id"]
    await client.post(f"/admin/bookings/{booking['id']}/mark-paid", headers=headers)

    stats = await client.get("/admin/referrals/analytics", headers=headers)
    assert [(s["name"], s["count"]) for s in stats.json()] == [("Kojo Promoter", 1), ("Idle Promoter", 0)]
    passengers = await client.get(f"/admin/referrals/{referral.json()['id']}/passengers", headers=headers)
    assert passengers.json() == ["Abena Owusu"]

    renamed = await client.put(f"/admin/referrals/{idle.json()['id']}", json={"name": "Busy Promoter", "phone": "0277000222"}, headers=headers)
    assert renamed.json()["name"] == "Busy Promoter"
    assert (await client.delete(f"/admin/referrals/{idle.json()['id']}", headers=headers)).status_code == 204


async def test_overview_report(client, admins, auth_headers, make_journey):
    admin, _ = admins
    headers = auth_headers(admin)
    route, bus = await make_journey(price="60.00")
    paid = (await client.post("/bookings", json=booking_body(route, bus, ["1", "2"]))).json()["booking"]
    await client.post("/bookings", json=booking_body(route, bus, ["3"], phone="0200000001"))
    await client.post(f"/admin/bookings/{paid['id']}/mark-paid", headers=headers)

    report = (await client.get("/admin/reports/overview", params={"year": 2024}, headers=headers)).json()

    assert float(report["total_revenue"]) == 120.0
    assert report["total_bookings"] == 2
    assert report["total_passengers"] == 1
    assert report["active_buses"] == 1
    august = [m for m in report["monthly_revenue"] if m["name"] == "Aug"]
    assert float(august[0]["total"]) == 120.0
    assert len(report["monthly_revenue"]) == 12


async def test_capacity_cannot_drop_below_held_seats(client, admins, auth_headers, pending_booking):
    admin, _ = admins
    headers = auth_headers(admin)
    _, bus, booking = pending_booking

    shrunk = await client.patch(f"/admin/buses/{bus.id}", json={"capacity": 1}, headers=headers)
    assert shrunk.status_code == 400
    assert "Seat(s) 2 are held" in shrunk.json()["detail"]

    trimmed = await client.patch(f"/admin/buses/{bus.id}", json={"capacity": 2}, headers=headers)
    assert trimmed.status_code == 200
    assert trimmed.json()["capacity"] == 2

    await client.post(f"/admin/bookings/{booking['id']}/release-seat", headers=headers)
    freed = await client.patch(f"/admin/buses/{bus.id}", json={"capacity": 1}, headers=headers)
    assert freed.status_code == 200
    assert freed.json()["capacity"] == 1


async def test_passenger_directory(client, admins, auth_headers, pending_booking):
    admin, _ = admins
    headers = auth_headers(admin)
    _, _, booking = pending_booking

    assert (await client.get("/admin/passengers", headers=headers)).json() == []

    await client.post(f"/admin/bookings/{booking['id']}/mark-paid", headers=headers)
    passengers = await client.get("/admin/passengers", headers=headers)
    assert passengers.json() == [{"phone": "0244123456", "name": "Abena Owusu", "emergency_contact": None}]


async def test_region_rename(client, admins, auth_headers):
    admin, _ = admins
    headers = auth_headers(admin)
    volta = (await client.post("/admin/regions", json={"name": "Volta"}, headers=headers)).json()
    await client.post("/admin/regions", json={"name": "Western"}, headers=headers)

    renamed = await client.put(f"/admin/regions/{volta['id']}", json={"name": "Oti"}, headers=headers)
    assert renamed.status_code == 200
    assert renamed.json() == {"id": volta["id"], "name": "Oti"}

    clash = await client.put(f"/admin/regions/{volta['id']}", json={"name": "Western"}, headers=headers)
    assert clash.status_code == 400
    assert (await client.put("/admin/regions/9999", json={"name": "Nowhere"}, headers=headers)).status_code == 404
    assert [r["name"] for r in (await client.get("/catalog/regions")).json()] == ["Oti", "Western"]


async def test_session_update_keeps_booked_departures_in_place(client, admins, auth_headers, make_journey):
    admin, _ = admins
    headers = auth_headers(admin)
    route, bus = await make_journey(days=())
    created = await client.post(
        "/admin/sessions",
        json={"route_ids": [route.id], "bus_ids": [bus.id], "departure_dates": ["2024-08-20", "2024-08-22", "2024-08-23"]},
        headers=headers,
    )
    booked, spare, other = created.json()

    moved = await client.patch(f"/admin/sessions/{booked['id']}", json={"name": "Moved", "departure_date": "2024-08-21"}, headers=headers)
    assert moved.status_code == 200
    assert moved.json()["name"] == "Moved"
    assert moved.json()["departure_date"] == "2024-08-21"

    ride = await client.post("/bookings", json=dict(booking_body(route, bus, ["4"]), date="2024-08-21"))
    assert ride.status_code == 201

    pinned = await client.patch(f"/admin/sessions/{booked['id']}", json={"departure_date": "2024-08-24"}, headers=headers)
    assert pinned.status_code == 400
    renamed = await client.patch(f"/admin/sessions/{booked['id']}", json={"name": "Harmattan special"}, headers=headers)
    assert renamed.json()["departure_date"] == "2024-08-21"

    duplicate = await client.patch(f"/admin/sessions/{other['id']}", json={"departure_date": spare["departure_date"]}, headers=headers)
    assert duplicate.status_code == 400
    assert (await client.patch("/admin/sessions/9999", json={"name": "x"}, headers=headers)).status_code == 404
