from datetime import datetime, timedelta

from roktodan.utils.analytics import (
    get_dashboard_stats, get_request_trends, get_blood_group_demand, get_volunteer_performance,
    get_geographic_distribution, get_response_times, REPORTS
)


def test_dashboard_stats(make_request, make_user):
    make_request(status='submitted', urgency='critical')
    make_request(status='approved')
    make_request(status='completed', completed_at=datetime.utcnow())
    make_request(status='cancelled', urgency='critical')
    make_user('donor')
    make_user('donor', is_available=False)

    stats = get_dashboard_stats()
    assert stats == {
        'pendingRequests': 2,
        'activeDonors': 1,
        'inTransit': 0,
        'completedToday': 1,
        'criticalRequests': 1,
    }


def test_request_trends(make_request):
    make_request(status='completed', urgency='critical')
    make_request(status='submitted')
    make_request(status='submitted', created_at=datetime.utcnow() - timedelta(days=45))

    trends = get_request_trends()
    assert len(trends['daily']) == 1
    today = trends['daily'][0]
    assert today['total'] == 2
    assert today['critical'] == 1
    assert today['completed'] == 1
    assert trends['statusDistribution'] == {'completed': 1, 'submitted': 1}
    assert trends['urgencyDistribution'] == {'critical': 1, 'normal': 1}


def test_blood_group_demand(make_request):
    make_request(blood_group='O-', status='submitted', urgency='critical')
    make_request(blood_group='O-', status='completed')
    make_request(blood_group='B+', status='approved')

    demand = get_blood_group_demand()
    assert demand[0] == {'bloodGroup': 'O-', 'total': 2, 'pending': 1, 'critical': 1}
    assert demand[1]['bloodGroup'] == 'B+'


def test_volunteer_performance(make_user, make_request, make_assignment, admin):
    busy = make_user('volunteer', requests_handled=7)
    make_user('volunteer', requests_handled=2)
    blood_request = make_request(status='volunteer_assigned')
    make_assignment(blood_request, busy.volunteer_profile, admin, assignment_type='volunteer', status='accepted')
    make_assignment(blood_request, busy.volunteer_profile, admin, assignment_type='volunteer', status='rejected')

    board = get_volunteer_performance()
    assert [row['requestsHandled'] for row in board] == [7, 2]
    assert board[0]['totalAssignments'] == 2
    assert board[0]['acceptedAssignments'] == 1
    assert board[1]['totalAssignments'] == 0


def test_geographic_distribution(make_request):
    make_request(district='Sylhet', status='completed')
    make_request(district='Sylhet', status='submitted')
    make_request(district='Khulna')

    rows = get_geographic_distribution()
    assert rows[0] == {'district': 'Sylhet', 'division': 'Dhaka', 'total': 2, 'pending': 1, 'completed': 1}
    assert rows[1]['district'] == 'Khulna'


def test_response_times(make_request):
    created = datetime(2026, 6, 1, 9, 0)
    make_request(urgency='critical', status='completed', created_at=created,
                 approved_at=created + timedelta(minutes=10), completed_at=created + timedelta(minutes=130))
    make_request(urgency='normal', status='approved', created_at=created,
                 approved_at=created + timedelta(minutes=30))
    make_request(status='submitted')

    times = get_response_times()
    assert times['avgApprovalTime'] == 20
    assert times['avgCompletionTime'] == 130

    by_tier = {row['urgency']: row for row in times['byUrgency']}
    assert by_tier['critical']['avgApprovalTime'] == 10
    assert by_tier['critical']['completedCount'] == 1
    assert by_tier['normal']['approvedCount'] == 1
    assert by_tier['urgent'] == {
        'urgency': 'urgent', 'avgApprovalTime': 0, 'avgCompletionTime': 0,
        'approvedCount': 0, 'completedCount': 0,
    }


def test_analytics_endpoint(client, login, admin, make_request):
    make_request()
    login(admin)

    everything = client.get('/api/admin/analytics').get_json()['data']
    assert set(everything) == set(REPORTS)

    single = client.get('/api/admin/analytics?type=bloodGroups').get_json()['data']
    assert list(single) == ['bloodGroups']

    unknown = client.get('/api/admin/analytics?type=weather')
    assert unknown.status_code == 400
    assert 'type' in unknown.get_json()['details']
