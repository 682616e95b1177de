"""
Voice chat signaling relay.

Audio travels peer to peer; the server only keeps track of who is in the
voice channel of a room and forwards opaque signaling payloads between
two registered participants.
"""

from dataclasses import dataclass
from typing import Dict, List


@dataclass
class VoicePeer:
    socket_id: str
    seat_idx: int
    name: str

    def to_dict(self) -> dict:
        return {'socketId': self.socket_id, 'seatIdx': self.seat_idx, 'name': self.name}


class VoiceRelay:
    def __init__(self):
        self.participants: Dict[str, VoicePeer] = {}

    def __contains__(self, socket_id: str) -> bool:
        return socket_id in self.participants

    def join(self, socket_id: str, seat_idx: int, name: str) -> VoicePeer:
        peer = VoicePeer(socket_id, seat_idx, name)
        self.participants[socket_id] = peer
        return peer

    def leave(self, socket_id: str) -> bool:
        return self.participants.pop(socket_id, None) is not None

    def peers_of(self, socket_id: str) -> List[dict]:
        return [p.to_dict() for sid, p in self.participants.items() if sid != socket_id]

    def can_signal(self, from_id: str, to_id) -> bool:
        if not isinstance(to_id, str) or not to_id:
            return False
        return from_id in self.participants and to_id in self.participants
