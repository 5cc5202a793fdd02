"""
Integration tests for the ward API.

These exercise the HTTP surface end to end against the database:
envelopes, status codes, access control and the occupancy rules as
seen by a client.  DRF's APIClient is used through APITestCase.
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.cache import cache
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from ..models import Allocation, AuditEvent, Patient, Room

User = get_user_model()


class WardAPITests(APITestCase):
    def setUp(self) -> None:
        cache.clear()
        self.staff = User.objects.create_user(username='nurse', password='P@ssw0rd1')
        self.staff.groups.add(Group.objects.create(name='ward_staff'))
        self.viewer = User.objects.create_user(username='viewer', password='P@ssw0rd1')
        self.client.force_authenticate(user=self.staff)

        self.ana = Patient.objects.create(name='Ana Lima', email='ana@example.com')
        self.bo = Patient.objects.create(name='Bo Chen', email='bo@example.com')
        self.r101 = Room.objects.create(room_number='101', price_per_day=Decimal('150.00'))
        self.r102 = Room.objects.create(room_number='102', price_per_day=Decimal('300.00'))

    def allocate(self, patient, room, when='2024-01-01T10:00:00Z'):
        return self.client.post(
            '/api/allocations',
            {'patientId': patient.id, 'roomId': room.id, 'allocationDate': when, 'notes': '<b>fall</b> risk'},
            format='json',
        )

    # -- allocations ---------------------------------------------------------

    def test_allocate_and_discharge(self):
        resp = self.allocate(self.ana, self.r101)
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertTrue(resp.data['ok'])
        data = resp.data['data']
        self.assertEqual(data['status'], 'ACTIVE')
        self.assertEqual(data['roomNumber'], '101')
        self.assertEqual(data['notes'], 'fall risk')
        self.r101.refresh_from_db()
        self.assertEqual(self.r101.status, Room.STATUS_OCCUPIED)

        current = self.client.get(f'/api/allocations/patient/{self.ana.id}')
        self.assertEqual(current.data['data']['id'], data['id'])

        resp = self.client.put(
            f"/api/allocations/{data['id']}/discharge", {'dischargeDate': '2024-01-04T10:00:00Z'}, format='json'
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['data']['status'], 'COMPLETED')
        self.assertEqual(resp.data['data']['totalAmount'], '450.00')
        self.r101.refresh_from_db()
        self.assertEqual(self.r101.status, Room.STATUS_AVAILABLE)

        bill = self.client.get(f"/api/allocations/{data['id']}/bill")
        self.assertEqual(bill.data['data']['days'], 3)
        self.assertEqual(bill.data['data']['totalAmount'], '450.00')
        self.assertFalse(bill.data['data']['estimated'])

        again = self.client.put(f"/api/allocations/{data['id']}/discharge", {}, format='json')
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data['error']['code'], 'invalid_state')

    def test_room_conflict(self):
        self.assertEqual(self.allocate(self.ana, self.r101).status_code, 201)
        resp = self.allocate(self.bo, self.r101)
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(resp.data['ok'])
        self.assertEqual(resp.data['error'], {'code': 'conflict', 'message': 'room not available'})

        resp = self.allocate(self.ana, self.r102)
        self.assertEqual(resp.data['error']['message'], 'patient already allocated')
        self.assertEqual(Allocation.objects.count(), 1)

    def test_transfer_and_cancel(self):
        allocation_id = self.allocate(self.ana, self.r101).data['data']['id']
        resp = self.client.put(f'/api/allocations/{allocation_id}/transfer', {'newRoomId': self.r102.id}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['data']['roomId'], self.r102.id)
        self.assertEqual(resp.data['data']['allocationDate'], '2024-01-01T10:00:00+00:00')

        resp = self.client.put(f'/api/allocations/{allocation_id}/cancel')
        self.assertEqual(resp.data['data']['status'], 'CANCELLED')
        self.assertIsNone(resp.data['data']['totalAmount'])
        self.assertEqual(Room.objects.filter(status=Room.STATUS_AVAILABLE).count(), 2)

        bill = self.client.get(f'/api/allocations/{allocation_id}/bill')
        self.assertEqual(bill.status_code, status.HTTP_409_CONFLICT)

        history = self.client.get(f'/api/allocations/patient/{self.ana.id}/history')
        self.assertEqual(len(history.data['data']), 1)
        room_history = self.client.get(f'/api/allocations/room/{self.r102.id}/history')
        self.assertEqual(len(room_history.data['data']), 1)

        detail = self.client.get(f'/api/allocations/{allocation_id}')
        actions = [e['action'] for e in detail.data['data']['auditTrail']]
        self.assertEqual(actions, ['allocation_allocate', 'allocation_transfer', 'allocation_cancel'])

    def test_listings(self):
        self.allocate(self.ana, self.r101)
        self.assertEqual(len(self.client.get('/api/allocations/active').data['data']), 1)
        self.assertEqual(self.client.get('/api/rooms/available/count').data['data'], 1)
        available = self.client.get('/api/rooms/available').data['data']
        self.assertEqual([r['roomNumber'] for r in available], ['102'])
        occupied = self.client.get('/api/rooms', {'status': 'OCCUPIED'}).data['data']
        self.assertEqual([r['roomNumber'] for r in occupied], ['101'])

        patients = {p['email']: p for p in self.client.get('/api/patients').data['data']}
        self.assertEqual(patients['ana@example.com']['roomNumber'], '101')
        self.assertNotIn('roomNumber', patients['bo@example.com'])

    def test_room_current_allocation(self):
        allocation_id = self.allocate(self.ana, self.r101).data['data']['id']
        resp = self.client.get(f'/api/allocations/room/{self.r101.id}')
        self.assertEqual(resp.status_code, 200)
        self.assertIsInstance(resp.data['data'], dict)
        self.assertEqual(resp.data['data']['id'], allocation_id)
        self.assertEqual(resp.data['data']['patientId'], self.ana.id)

        free = self.client.get(f'/api/allocations/room/{self.r102.id}')
        self.assertEqual(free.status_code, 404)
        self.assertEqual(free.data['error']['code'], 'not_found')

    def test_not_found(self):
        resp = self.client.get('/api/allocations/999')
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.data['error']['code'], 'not_found')
        resp = self.client.get(f'/api/allocations/patient/{self.bo.id}')
        self.assertEqual(resp.status_code, 404)
        resp = self.client.post('/api/allocations', {'patientId': self.ana.id, 'roomId': 999}, format='json')
        self.assertEqual(resp.status_code, 404)

    def test_bad_input(self):
        resp = self.client.post('/api/allocations', {'patientId': 'x'}, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.data['ok'])
        resp = self.client.put(
            f"/api/allocations/{self.allocate(self.ana, self.r101).data['data']['id']}/discharge",
            {'dischargeDate': '2023-12-31T10:00:00Z'}, format='json',
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data['error']['code'], 'validation_error')

    # -- patients and rooms --------------------------------------------------

    def test_patient_crud(self):
        resp = self.client.post('/api/patients', {'name': 'Cy Diaz', 'email': 'cy@example.com'}, format='json')
        self.assertEqual(resp.status_code, 201)
        pid = resp.data['data']['id']
        dup = self.client.post('/api/patients', {'name': 'Cy Two', 'email': 'cy@example.com'}, format='json')
        self.assertEqual(dup.status_code, 409)

        resp = self.client.put(f'/api/patients/{pid}', {'phone': '555-0199'}, format='json')
        self.assertEqual(resp.data['data']['phone'], '555-0199')
        self.assertEqual(self.client.delete(f'/api/patients/{pid}').status_code, 200)
        self.assertFalse(Patient.objects.filter(pk=pid).exists())
        self.assertTrue(AuditEvent.objects.filter(action='patient_delete', object_id=pid).exists())

    def test_patient_with_stay_is_protected(self):
        allocation_id = self.allocate(self.ana, self.r101).data['data']['id']
        resp = self.client.put(f'/api/patients/{self.ana.id}', {'status': 'DECEASED'}, format='json')
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(self.client.delete(f'/api/patients/{self.ana.id}').status_code, 409)

        self.client.put(f'/api/allocations/{allocation_id}/discharge', {}, format='json')
        self.assertEqual(self.client.delete(f'/api/patients/{self.ana.id}').status_code, 200)
        self.assertFalse(Allocation.objects.filter(pk=allocation_id).exists())

    def test_room_rules(self):
        resp = self.client.post(
            '/api/rooms',
            {'roomNumber': '201', 'roomType': 'ICU', 'floor': 2, 'capacity': 1, 'pricePerDay': '800.00'},
            format='json',
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data['data']['status'], 'AVAILABLE')
        dup = self.client.post(
            '/api/rooms',
            {'roomNumber': '201', 'roomType': 'ICU', 'floor': 2, 'capacity': 1, 'pricePerDay': '800.00'},
            format='json',
        )
        self.assertEqual(dup.status_code, 409)

        self.allocate(self.ana, self.r101)
        resp = self.client.put(f'/api/rooms/{self.r101.id}', {'status': 'MAINTENANCE'}, format='json')
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(self.client.delete(f'/api/rooms/{self.r101.id}').status_code, 409)

        resp = self.client.put(f'/api/rooms/{self.r102.id}', {'status': 'OCCUPIED'}, format='json')
        self.assertEqual(resp.status_code, 400)
        resp = self.client.put(f'/api/rooms/{self.r102.id}', {'status': 'MAINTENANCE'}, format='json')
        self.assertEqual(resp.data['data']['status'], 'MAINTENANCE')
        self.assertEqual(self.allocate(self.bo, self.r102).status_code, 409)

    def test_dashboard(self):
        first = self.client.get('/api/dashboard').data['data']
        self.assertEqual(first['rooms']['AVAILABLE'], 2)
        self.allocate(self.ana, self.r101)
        data = self.client.get('/api/dashboard').data['data']
        self.assertEqual(data['rooms']['OCCUPIED'], 1)
        self.assertEqual(data['allocations']['ACTIVE'], 1)
        self.assertEqual(data['patients']['ACTIVE'], 2)
        self.assertEqual(data['occupancyRate'], 0.5)

    # -- access control ------------------------------------------------------

    def test_readers_cannot_write(self):
        self.client.force_authenticate(user=self.viewer)
        self.assertEqual(self.client.get('/api/rooms').status_code, 200)
        resp = self.allocate(self.ana, self.r101)
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(resp.data['ok'])
        self.assertEqual(Allocation.objects.count(), 0)

    def test_anonymous_rejected(self):
        client = APIClient()
        resp = client.get('/api/allocations')
        self.assertIn(resp.status_code, (401, 403))

    def test_token_auth(self):
        from rest_framework.authtoken.models import Token
        token = Token.objects.create(user=self.staff)
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')
        self.assertEqual(client.get('/api/patients').status_code, 200)

    def test_healthz(self):
        resp = APIClient().get('/healthz')
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['ok'])

    def test_metrics_exposed(self):
        resp = APIClient().get('/metrics')
        self.assertEqual(resp.status_code, 200)
