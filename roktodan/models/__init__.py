from roktodan.models.user import User, Donor, Volunteer, Admin
from roktodan.models.blood_request import BloodRequest, Assignment
from roktodan.models.donation import Donation, Notification, AdminActivityLog
from roktodan.models.route import Route, RoutePosition

__all__ = [
    'User', 'Donor', 'Volunteer', 'Admin',
    'BloodRequest', 'Assignment',
    'Donation', 'Notification', 'AdminActivityLog',
    'Route', 'RoutePosition',
]
