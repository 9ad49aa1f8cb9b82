"""
Team balancing domain service.

Splits a full queue into two rating-balanced teams and names them.
"""

from domain.models.team import Team, TeamCandidate


class TeamBalancingService:
    """
    Pure domain service for lobby team formation.

    Responsibilities:
    - Order candidates (host first, then by rating)
    - Greedily assign each candidate to the weaker team with room
    - Generate team names from member names
    """

    def order_candidates(self, candidates: list[TeamCandidate]) -> list[TeamCandidate]:
        """
        Order candidates for assignment.

        The host is placed first; everyone else follows by rating descending
        with earlier joiners winning ties.
        """
        hosts = [c for c in candidates if c.is_host]
        others = [c for c in candidates if not c.is_host]
        others.sort(key=lambda c: (-c.rating, c.joined_at, c.player_id))
        return hosts + others

    def split_teams(self, candidates: list[TeamCandidate], max_players: int) -> tuple[Team, Team]:
        """
        Split candidates into two teams of at most max_players // 2 each.

        Args:
            candidates: Players in the lobby
            max_players: The game's capacity

        Returns:
            (team 1, team 2) with names filled in
        """
        team_size = max(1, max_players // 2)
        team1 = Team(team_number=1, capacity=team_size)
        team2 = Team(team_number=2, capacity=team_size)

        for candidate in self.order_candidates(candidates):
            if team1.is_full and team2.is_full:
                raise ValueError("More candidates than team slots")
            if team2.is_full:
                target = team1
            elif team1.is_full:
                target = team2
            else:
                target = team1 if team1.total_rating <= team2.total_rating else team2
            target.members.append(candidate)

        team1.name = self.generate_team_name(team1.members, team_size)
        team2.name = self.generate_team_name(team2.members, team_size)
        return team1, team2

    @staticmethod
    def generate_team_name(members: list[TeamCandidate], team_size: int) -> str:
        """
        Build a team name out of slices of each member's name.

        Member i contributes the (i % team_size)-th chunk of their name, where
        chunks are len(name) // team_size characters wide (at least one).
        """
        if not members:
            return "Team"

        portions = []
        for index, member in enumerate(members):
            name = member.username or f"Player{index + 1}"
            portion_size = max(1, len(name) // team_size)
            portion_index = index % team_size
            start = portion_index * portion_size
            end = min(start + portion_size, len(name))
            portion = name[start:end]
            if not portion:
                portion = name[0]
            portions.append(portion)

        return f"Team {''.join(portions)}"
