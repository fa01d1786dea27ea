"""
Demo data: users, tickets, comments, a rating, notifications and knowledge articles.
Loaded at startup into an empty store when SEED_DEMO_DATA is on; an existing store is left alone.
"""

import logging
from datetime import timedelta

from helpdesk.models import Role, TicketPriority, TicketStatus
from helpdesk.store.base import Store, utcnow

logger = logging.getLogger(__name__)

DEMO_USERS = [
    {"username": "admin", "password": "admin123", "email": "admin@helpdesk.com",
     "full_name": "Administrator", "role": Role.ADMINISTRATOR},
    {"username": "manager1", "password": "manager123", "email": "manager@helpdesk.com",
     "full_name": "Support Manager", "role": Role.MANAGER},
    {"username": "agent1", "password": "agent123", "email": "agent1@helpdesk.com",
     "full_name": "John Smith", "role": Role.AGENT},
    {"username": "agent2", "password": "agent123", "email": "agent2@helpdesk.com",
     "full_name": "Sarah Johnson", "role": Role.AGENT},
    {"username": "customer1", "password": "customer123", "email": "jane@example.com",
     "full_name": "Jane Smith", "role": Role.CUSTOMER},
    {"username": "customer2", "password": "customer123", "email": "mike@example.com",
     "full_name": "Mike Davis", "role": Role.CUSTOMER},
]

# (subject, description, status, priority, category, assignee username, customer username, age in hours)
DEMO_TICKETS = [
    ("Unable to access email account", "Getting an authentication error since this morning.",
     TicketStatus.OPEN, TicketPriority.HIGH, "Email", "agent1", "customer1", 2),
    ("Printer not working on 3rd floor", "The shared printer shows a paper jam that is not there.",
     TicketStatus.IN_PROGRESS, TicketPriority.MEDIUM, "Hardware", "agent2", "customer2", 20),
    ("Request for new software license", "Need a design tool license for the marketing team.",
     TicketStatus.OPEN, TicketPriority.LOW, "Software", None, "customer1", 30),
    ("VPN connection drops frequently", "VPN disconnects every 10 minutes when working remotely.",
     TicketStatus.RESOLVED, TicketPriority.HIGH, "Network", "agent1", "customer2", 96),
    ("Production database is down", "Checkout fails for every customer.",
     TicketStatus.IN_PROGRESS, TicketPriority.URGENT, "Infrastructure", "agent2", "customer1", 1),
]

DEMO_ARTICLES = [
    {
        "title": "How to Reset Your Password",
        "excerpt": "Step-by-step guide to reset your password safely and securely.",
        "content": "# Password Reset Guide\n\n1. Open the login page\n2. Click 'Forgot Password'\n"
                   "3. Enter your email address\n4. Enter the code you receive\n5. Choose a new password",
        "category": "Account Management",
        "tags": ["account", "password"],
    },
    {
        "title": "Troubleshooting Login Issues",
        "excerpt": "Common solutions for login problems and authentication errors.",
        "content": "# Login Troubleshooting\n\n- Check caps lock\n- Clear browser cache and cookies\n"
                   "- Try a different browser\n- Contact support if your account is locked",
        "category": "Technical Support",
        "tags": ["login", "troubleshooting"],
    },
    {
        "title": "Setting Up Two-Factor Authentication",
        "excerpt": "Complete guide to enable and configure two-factor authentication.",
        "content": "# Two-Factor Authentication\n\n1. Go to Security Settings\n2. Click 'Enable 2FA'\n"
                   "3. Scan the QR code with an authenticator app\n4. Save your backup codes",
        "category": "Security",
        "tags": ["2fa", "security"],
    },
]


def seed_demo_data(store: Store) -> bool:
    """Populate an empty store. Returns False (and changes nothing) if any user exists."""
    if store.users.find_one() is not None:
        return False
    now = utcnow()
    ids = {}
    for fields in DEMO_USERS:
        user = store.users.create(fields)
        ids[user.username] = user.id

    tickets = []
    for subject, description, status, priority, category, assignee, customer, age in DEMO_TICKETS:
        created = now - timedelta(hours=age)
        first_response = created + timedelta(hours=1) if status != TicketStatus.OPEN else None
        resolved = created + timedelta(hours=age / 2) if status == TicketStatus.RESOLVED else None
        tickets.append(
            store.tickets.create(
                {
                    "subject": subject,
                    "description": description,
                    "status": status,
                    "priority": priority,
                    "category": category,
                    "assignee_id": ids.get(assignee),
                    "customer_id": ids.get(customer),
                    "first_response_at": first_response,
                    "resolved_at": resolved,
                    "created_at": created,
                    "updated_at": resolved or first_response or created,
                }
            )
        )

    email, printer, _, vpn, _ = tickets
    store.comments.create({"ticket_id": email.ticket_id, "user_id": ids["customer1"],
                           "content": "I already tried resetting my password.",
                           "created_at": email.created_at + timedelta(minutes=10)})
    store.comments.create({"ticket_id": printer.ticket_id, "user_id": ids["agent2"],
                           "content": "Technician scheduled for this afternoon.",
                           "created_at": printer.created_at + timedelta(hours=1)})
    store.comments.create({"ticket_id": printer.ticket_id, "user_id": ids["agent2"],
                           "content": "Replacement fuser ordered.", "is_internal": True,
                           "created_at": printer.created_at + timedelta(hours=2)})
    store.ticket_ratings.create({"ticket_id": vpn.ticket_id, "user_id": ids["customer2"], "rating": 5,
                                 "feedback": "Quick fix, thanks!"})

    admin_id = ids["admin"]
    store.notifications.create({"user_id": admin_id, "title": "New Ticket Assigned",
                                "message": f"A new ticket ({email.ticket_id}) has been assigned to you.",
                                "type": "assignment", "ticket_id": email.ticket_id})
    store.notifications.create({"user_id": admin_id, "title": "Ticket Resolved",
                                "message": f"Ticket ({vpn.ticket_id}) has been resolved.",
                                "type": "status", "ticket_id": vpn.ticket_id, "is_read": True})
    store.notifications.create({"user_id": admin_id, "title": "System Maintenance",
                                "message": "Scheduled maintenance tonight from 2:00 AM to 4:00 AM.",
                                "type": "system"})

    for fields in DEMO_ARTICLES:
        store.articles.create({**fields, "author_id": ids["manager1"], "is_published": True})

    logger.info("Seeded %d users, %d tickets and %d articles.", len(DEMO_USERS), len(tickets), len(DEMO_ARTICLES))
    return True
