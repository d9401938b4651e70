import pytest

from leadhub.core.errors import PermissionDenied, TicketNotFound, ValidationError
from leadhub.services import support_service


def test_staff_reply_moves_ticket_in_progress(db, make_user):
    user = make_user()
    staff = make_user(role="subadmin", permissions=["support_management"])
    ticket = support_service.create_ticket(db, user, "Refund", "  I was charged twice  ")
    assert ticket.message == "I was charged twice"

    support_service.add_reply(db, ticket, user, "Any news?")
    assert ticket.status == "open"

    reply = support_service.add_reply(db, ticket, staff, "Looking into it")
    assert reply.is_from_staff is True
    db.refresh(ticket)
    assert ticket.status == "in_progress"
    assert [r.message for r in support_service.list_replies(db, ticket.id)] == ["Any news?", "Looking into it"]


def test_closed_ticket_takes_no_replies(db, make_user):
    user = make_user()
    ticket = support_service.create_ticket(db, user, "Bug", "Broken button")
    support_service.set_status(db, ticket, "closed")
    with pytest.raises(ValidationError):
        support_service.add_reply(db, ticket, user, "Still broken")
    with pytest.raises(ValidationError):
        support_service.set_status(db, ticket, "archived")


def test_ticket_access(db, make_user):
    owner = make_user()
    stranger = make_user()
    support = make_user(role="subadmin", permissions=["support_management"])
    ticket = support_service.create_ticket(db, owner, "Question", "How do coins work?")

    assert support_service.get_ticket_for(db, ticket.id, owner).id == ticket.id
    assert support_service.get_ticket_for(db, ticket.id, support).id == ticket.id
    with pytest.raises(PermissionDenied):
        support_service.get_ticket_for(db, ticket.id, stranger)
    with pytest.raises(TicketNotFound):
        support_service.get_ticket_for(db, 999, owner)


def test_ticket_api(client, login, make_user):
    owner = make_user()
    support = make_user(role="subadmin", permissions=["support_management"])

    login(owner)
    ticket = client.post("/api/support/tickets", json={"subject": "Login", "message": "Cannot sign in"}).json()
    assert [t["id"] for t in client.get("/api/support/tickets").json()] == [ticket["id"]]
    assert client.get("/api/support/tickets/all").status_code == 403

    login(support)
    listing = client.get("/api/support/tickets/all").json()
    assert listing["total"] == 1
    assert listing["tickets"][0]["user_email"] == owner.email

    client.post(f"/api/support/tickets/{ticket['id']}/replies", json={"message": "Reset link sent"})
    res = client.put(f"/api/support/tickets/{ticket['id']}/status", json={"status": "resolved"})
    assert res.json()["status"] == "resolved"

    login(owner)
    detail = client.get(f"/api/support/tickets/{ticket['id']}").json()
    assert detail["status"] == "resolved"
    assert detail["replies"][0]["is_from_staff"] is True


def test_ticket_api_hides_other_users_tickets(client, login, make_user):
    owner = make_user()
    login(owner)
    ticket = client.post("/api/support/tickets", json={"subject": "Billing", "message": "Invoice?"}).json()

    login(make_user())
    res = client.get(f"/api/support/tickets/{ticket['id']}")
    assert res.status_code == 403
    assert client.get("/api/support/tickets/999").status_code == 404
