"""
Unit tests for TeamRegistry class.
Tests: create_team, update_team, edit_team, delete_team, list_teams,
       list_teams_for_wallet, list_verified_teams
"""
import pytest

from conftest import ADMIN_WALLET, member_list, new_wallet
from league.errors import BadRequest, CapacityError, Conflict, Forbidden, NotFound
from league.models import db, Invite, Team, TournamentEntry, User
from league.notifier import Notifier, user_channel
from league.team_registry import TeamRegistry


def _user_team_ids(wallet):
    user = User.query.filter_by(wallet_address=wallet).first()
    return user.team_ids if user else []


class TestCreateTeam:
    """Tests for create_team method."""

    def test_create_team(self, app, db_session, creator):
        """Creator entry starts accepted, the other four pending with invites."""
        with app.app_context():
            members = member_list(creator)
            team, invites = app.teams.create_team('Alpha', members, creator)

            assert team.name == 'Alpha'
            assert team.created_by == creator
            assert len(team.members) == 5
            assert team.members[0].wallet_address == creator
            assert team.members[0].status == 'accepted'
            assert all(m.status == 'pending' for m in team.members[1:])
            assert team.status == 'unverified'

            assert len(invites) == 4
            assert {i.wallet_address for i in invites} == {m['walletAddress'] for m in members[1:]}
            assert all(i.status == 'pending' and i.team_name == 'Alpha' for i in invites)

            assert _user_team_ids(creator) == [team.team_id]

    def test_member_order_preserved(self, app, db_session, creator):
        with app.app_context():
            members = member_list(creator, count=7)
            team, _ = app.teams.create_team('Ordered', members, creator)

            assert team.member_wallets == [m['walletAddress'] for m in members]

    def test_creator_not_listed(self, app, db_session, creator):
        """Without the creator in the list every member gets an invite."""
        with app.app_context():
            members = [{'walletAddress': new_wallet()} for _ in range(5)]
            team, invites = app.teams.create_team('Coach Led', members, creator)

            assert len(invites) == 5
            assert team.involves(creator)

    def test_twitter_link_and_banner(self, app, db_session, creator):
        with app.app_context():
            team, _ = app.teams.create_team(
                'Linked', member_list(creator), creator,
                twitter_link='https://x.com/linked',
                banner_url='data:image/png;base64,AAAA'
            )

            data = team.to_dict()
            assert data['twitterLink'] == 'https://x.com/linked'
            assert data['bannerUrl'] == 'data:image/png;base64,AAAA'

    def test_too_few_members(self, app, db_session, creator):
        with app.app_context():
            with pytest.raises(BadRequest):
                app.teams.create_team('Small', member_list(creator, count=4), creator)
            assert Team.query.count() == 0

    def test_too_many_members(self, app, db_session, creator):
        with app.app_context():
            with pytest.raises(BadRequest):
                app.teams.create_team('Big', member_list(creator, count=11), creator)

    def test_name_required(self, app, db_session, creator):
        with app.app_context():
            with pytest.raises(BadRequest):
                app.teams.create_team('', member_list(creator), creator)

    def test_sixth_team_rejected(self, app, db_session, creator):
        """A creator never owns more than five teams."""
        with app.app_context():
            for i in range(5):
                app.teams.create_team(f'Team {i}', member_list(creator), creator)

            with pytest.raises(CapacityError) as exc_info:
                app.teams.create_team('Team 6', member_list(creator), creator)

            assert 'maximum limit of 5 teams' in exc_info.value.message
            assert exc_info.value.status_code == 400
            assert Team.query.filter_by(created_by=creator).count() == 5
            assert Invite.query.count() == 20

    def test_capacity_frees_after_delete(self, app, db_session, creator):
        with app.app_context():
            ids = [app.teams.create_team(f'Team {i}', member_list(creator), creator)[0].team_id
                   for i in range(5)]
            app.teams.delete_team(ids[0], creator)

            team, _ = app.teams.create_team('Replacement', member_list(creator), creator)
            assert team.team_id not in ids

    def test_notifies_members(self, app, db_session, creator, mock_redis):
        with app.app_context():
            registry = TeamRegistry(Notifier(mock_redis))
            members = member_list(creator)
            registry.create_team('Alpha', members, creator)

            channels = [c.args[0] for c in mock_redis.publish.call_args_list]
            assert sorted(channels) == sorted(user_channel(m['walletAddress']) for m in members)


class TestReads:
    """Tests for get and list methods."""

    def test_require_team_missing(self, app, db_session):
        with app.app_context():
            with pytest.raises(NotFound):
                app.teams.require_team('team_missing')

    def test_get_teams_skips_missing(self, app, db_session, sample_team):
        with app.app_context():
            teams = app.teams.get_teams(['team_missing', sample_team['team_id']])
            assert [t.team_id for t in teams] == [sample_team['team_id']]

    def test_list_recent_limit(self, app, db_session, creator):
        with app.app_context():
            other = new_wallet()
            for i in range(4):
                app.teams.create_team(f'Mine {i}', member_list(creator), creator)
                app.teams.create_team(f'Theirs {i}', member_list(other), other)

            teams, total = app.teams.list_teams()

            assert total == 8
            assert len(teams) == 5

    def test_zero_limit_lists_everything(self, app, db_session, creator):
        with app.app_context():
            other = new_wallet()
            for i in range(4):
                app.teams.create_team(f'Mine {i}', member_list(creator), creator)
                app.teams.create_team(f'Theirs {i}', member_list(other), other)

            teams, total = app.teams.list_teams(limit=0)
            assert len(teams) == total == 8

            teams, total = app.teams.list_teams(owner_wallet=creator, limit=0)
            assert len(teams) == total == 4

    def test_search_is_case_insensitive(self, app, db_session, creator):
        with app.app_context():
            app.teams.create_team('Red Dragons', member_list(creator), creator)
            app.teams.create_team('Blue Whales', member_list(creator), creator)

            teams, _ = app.teams.list_teams(search='dragon')
            assert [t.name for t in teams] == ['Red Dragons']

    def test_search_escapes_wildcards(self, app, db_session, creator):
        with app.app_context():
            app.teams.create_team('100% Club', member_list(creator), creator)
            app.teams.create_team('Other', member_list(creator), creator)

            teams, _ = app.teams.list_teams(search='%')
            assert [t.name for t in teams] == ['100% Club']

    def test_owner_listing_uses_team_set(self, app, db_session, sample_team):
        with app.app_context():
            teams, total = app.teams.list_teams(owner_wallet=sample_team['creator'])
            assert total == 1
            assert teams[0].team_id == sample_team['team_id']

            # Invited but not yet accepted: not in the member's team set
            teams, total = app.teams.list_teams(owner_wallet=sample_team['members'][1])
            assert teams == []
            assert total == 0

    def test_list_for_wallet_includes_pending_members(self, app, db_session, sample_team):
        with app.app_context():
            teams = app.teams.list_teams_for_wallet(sample_team['members'][2])
            assert [t.team_id for t in teams] == [sample_team['team_id']]

    def test_verified_after_all_accept(self, app, db_session, sample_team):
        with app.app_context():
            creator = sample_team['creator']
            assert app.teams.list_verified_teams(creator) == []

            for invite_id in sample_team['invites'].values():
                app.invites.respond(invite_id, 'accepted')

            teams = app.teams.list_verified_teams(creator)
            assert [t.team_id for t in teams] == [sample_team['team_id']]
            assert teams[0].status == 'verified'


class TestUpdateTeam:
    """Tests for update_team method."""

    def test_rename(self, app, db_session, sample_team):
        with app.app_context():
            team = app.teams.update_team(
                sample_team['team_id'], {'name': 'Omega'}, sample_team['creator']
            )
            assert team.name == 'Omega'

    def test_rename_keeps_invite_team_name(self, app, db_session, sample_team):
        """Invites keep the team name they were created with."""
        with app.app_context():
            app.teams.update_team(sample_team['team_id'], {'name': 'Omega'}, sample_team['creator'])
            names = {i.team_name for i in Invite.query.filter_by(team_id=sample_team['team_id'])}
            assert names == {'Alpha'}

    def test_update_link_only(self, app, db_session, sample_team):
        with app.app_context():
            team = app.teams.update_team(
                sample_team['team_id'], {'twitterLink': 'https://x.com/a'}, sample_team['creator']
            )
            assert team.name == 'Alpha'
            assert team.twitter_link == 'https://x.com/a'

    def test_non_creator_forbidden(self, app, db_session, sample_team):
        with app.app_context():
            with pytest.raises(Forbidden):
                app.teams.update_team(
                    sample_team['team_id'], {'name': 'Hijack'}, sample_team['members'][1]
                )

    def test_missing_team(self, app, db_session, creator):
        with app.app_context():
            with pytest.raises(NotFound):
                app.teams.update_team('team_missing', {'name': 'X'}, creator)


class TestEditTeam:
    """Tests for edit_team method."""

    def test_replace_member(self, app, db_session, sample_team):
        """Kept members keep status, added get invites, removed lose theirs."""
        with app.app_context():
            team_id = sample_team['team_id']
            creator = sample_team['creator']
            kept, dropped = sample_team['members'][1], sample_team['members'][4]

            app.invites.respond(sample_team['invites'][kept], 'accepted')
            app.invites.respond(sample_team['invites'][dropped], 'accepted')
            assert team_id in _user_team_ids(dropped)

            newcomer = new_wallet()
            wallets = sample_team['members'][:4] + [newcomer]
            members = [{'name': f'P{i}', 'walletAddress': w} for i, w in enumerate(wallets)]

            team = app.teams.edit_team(team_id, 'Alpha Prime', members, creator)

            statuses = {m.wallet_address: m.status for m in team.members}
            assert team.name == 'Alpha Prime'
            assert statuses[creator] == 'accepted'
            assert statuses[kept] == 'accepted'
            assert statuses[newcomer] == 'pending'
            assert dropped not in statuses

            assert Invite.query.filter_by(team_id=team_id, wallet_address=newcomer).count() == 1
            assert Invite.query.filter_by(team_id=team_id, wallet_address=dropped).count() == 0
            assert team_id not in _user_team_ids(dropped)
            assert team_id in _user_team_ids(kept)

    def test_edit_keeps_link_when_absent(self, app, db_session, creator):
        with app.app_context():
            members = member_list(creator)
            team, _ = app.teams.create_team('Linked', members, creator, twitter_link='https://x.com/l')

            team = app.teams.edit_team(team.team_id, 'Linked', members, creator)
            assert team.twitter_link == 'https://x.com/l'

    def test_edit_non_creator_forbidden(self, app, db_session, sample_team):
        with app.app_context():
            members = [{'walletAddress': w} for w in sample_team['members']]
            with pytest.raises(Forbidden):
                app.teams.edit_team(sample_team['team_id'], 'X', members, ADMIN_WALLET)

    def test_edit_cannot_add_player_from_other_entered_team(self, app, db_session):
        """Editing an entered team cannot put a wallet on two teams in the active tournament."""
        with app.app_context():
            first_creator, second_creator = new_wallet(), new_wallet()
            first, _ = app.teams.create_team('Alpha', member_list(first_creator), first_creator)
            second_members = member_list(second_creator)
            second, _ = app.teams.create_team('Bravo', second_members, second_creator)
            first_id, second_id = first.team_id, second.team_id
            app.tournaments.join_active_tournament(first_id, first_creator)
            app.tournaments.join_active_tournament(second_id, second_creator)

            swapped = second_members[:4] + [{'name': 'Ringer', 'walletAddress': first_creator}]
            with pytest.raises(Conflict) as exc_info:
                app.teams.edit_team(second_id, 'Bravo', swapped, second_creator)

            assert 'already in this tournament with another team' in exc_info.value.message
            tournament = app.tournaments.get_active_tournament()
            holders = [t.team_id for t in app.teams.get_teams(tournament.team_ids)
                       if t.involves(first_creator)]
            assert holders == [first_id]
            assert Invite.query.filter_by(team_id=second_id, wallet_address=first_creator).count() == 0

    def test_edit_entered_team_with_new_player(self, app, db_session, sample_team):
        """Wallets not playing elsewhere in the tournament can still be added."""
        with app.app_context():
            app.tournaments.join_active_tournament(sample_team['team_id'], sample_team['creator'])

            newcomer = new_wallet()
            wallets = sample_team['members'][:4] + [newcomer]
            team = app.teams.edit_team(
                sample_team['team_id'], 'Alpha',
                [{'walletAddress': w} for w in wallets], sample_team['creator']
            )
            assert newcomer in team.member_wallets

    def test_edit_invalid_members_leaves_team(self, app, db_session, sample_team):
        with app.app_context():
            members = [{'walletAddress': w} for w in sample_team['members'][:3]]
            with pytest.raises(BadRequest):
                app.teams.edit_team(sample_team['team_id'], 'X', members, sample_team['creator'])

            team = app.teams.get_team(sample_team['team_id'])
            assert team.name == 'Alpha'
            assert len(team.members) == 5


class TestDeleteTeam:
    """Tests for delete_team method."""

    def test_creator_deletes(self, app, db_session, sample_team):
        with app.app_context():
            team_id = sample_team['team_id']
            for invite_id in sample_team['invites'].values():
                app.invites.respond(invite_id, 'accepted')

            app.teams.delete_team(team_id, sample_team['creator'])

            assert app.teams.get_team(team_id) is None
            assert Invite.query.filter_by(team_id=team_id).count() == 0
            for wallet in sample_team['members']:
                assert team_id not in _user_team_ids(wallet)

    def test_admin_deletes_any_team(self, app, db_session, sample_team):
        """Admin wallets may delete teams they did not create."""
        with app.app_context():
            team_id = sample_team['team_id']
            app.teams.delete_team(team_id, ADMIN_WALLET)

            assert app.teams.get_team(team_id) is None
            assert Invite.query.filter_by(team_id=team_id).count() == 0
            assert team_id not in _user_team_ids(sample_team['creator'])

    def test_member_cannot_delete(self, app, db_session, sample_team):
        with app.app_context():
            with pytest.raises(Forbidden):
                app.teams.delete_team(sample_team['team_id'], sample_team['members'][1])
            assert app.teams.get_team(sample_team['team_id']) is not None

    def test_injected_admin_list(self, app, db_session, sample_team):
        with app.app_context():
            outsider = new_wallet()
            registry = TeamRegistry(admin_wallets={outsider})

            registry.delete_team(sample_team['team_id'], outsider)
            assert registry.get_team(sample_team['team_id']) is None

    def test_delete_removes_tournament_entry(self, app, db_session, sample_team):
        with app.app_context():
            app.tournaments.join_active_tournament(sample_team['team_id'], sample_team['creator'])
            app.teams.delete_team(sample_team['team_id'], sample_team['creator'])

            assert TournamentEntry.query.filter_by(team_id=sample_team['team_id']).count() == 0

    def test_missing_team(self, app, db_session, creator):
        with app.app_context():
            with pytest.raises(NotFound):
                app.teams.delete_team('team_missing', creator)

    def test_failure_rolls_back(self, app, db_session, sample_team, mocker):
        """A failure mid-delete leaves the team and its invites in place."""
        with app.app_context():
            mocker.patch.object(app.accounts, 'remove_team', side_effect=RuntimeError('boom'))

            with pytest.raises(RuntimeError):
                app.teams.delete_team(sample_team['team_id'], sample_team['creator'])

            db.session.expire_all()
            assert app.teams.get_team(sample_team['team_id']) is not None
            assert Invite.query.filter_by(team_id=sample_team['team_id']).count() == 4
