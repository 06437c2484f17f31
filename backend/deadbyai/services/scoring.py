from typing import Dict, List

from deadbyai.models import Room, RoundResult
from deadbyai.services.judge import Verdict

FORFEIT_REASONING = "No story was submitted before time ran out."


def score_round(room: Room, verdicts: Dict[str, Verdict]) -> List[RoundResult]:
    """Apply the verdicts for the current round and attach the results.

    +1 to each player who survived. Players without a submission forfeit:
    they did not survive and are never sent to the judge. Results follow
    the room's join order.
    """
    results = []
    for player in room.players:
        if player.id in room.submissions and player.id in verdicts:
            verdict = verdicts[player.id]
            survived, reasoning = bool(verdict.survived), verdict.reasoning
        else:
            survived, reasoning = False, FORFEIT_REASONING
        if survived:
            player.score += 1
        results.append(RoundResult(player.id, player.name, survived, reasoning))
    room.results = results
    return results
