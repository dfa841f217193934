"""Legal and pseudo-legal move generation + attack detection."""

from __future__ import annotations

from typing import TYPE_CHECKING

from chessterm.core.enums import CastlingRights, Color, MoveFlag, PieceType
from chessterm.core.move import Move
from chessterm.core.types import Square, make_square

if TYPE_CHECKING:
    from chessterm.core.position import Position


KNIGHT_OFFSETS: tuple[tuple[int, int], ...] = (
    (-2, -1),
    (-2, 1),
    (-1, -2),
    (-1, 2),
    (1, -2),
    (1, 2),
    (2, -1),
    (2, 1),
)

KING_OFFSETS: tuple[tuple[int, int], ...] = (
    (-1, -1),
    (-1, 0),
    (-1, 1),
    (0, -1),
    (0, 1),
    (1, -1),
    (1, 0),
    (1, 1),
)

BISHOP_DIRS: tuple[tuple[int, int], ...] = ((-1, -1), (-1, 1), (1, -1), (1, 1))
ROOK_DIRS: tuple[tuple[int, int], ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))
QUEEN_DIRS: tuple[tuple[int, int], ...] = BISHOP_DIRS + ROOK_DIRS

PROMOTION_TYPES: tuple[PieceType, ...] = (
    PieceType.QUEEN,
    PieceType.ROOK,
    PieceType.BISHOP,
    PieceType.KNIGHT,
)
_COLOR_OPPOSITE: tuple[Color, Color] = (Color.BLACK, Color.WHITE)

# Per color: (push delta, double-push start rank, rank a push promotes from)
_PAWN_GEOMETRY: tuple[tuple[int, int, int], tuple[int, int, int]] = (
    (8, 1, 6),
    (-8, 6, 1),
)

# Per color: (kingside right, queenside right, back-rank offset)
_CASTLING_GEOMETRY: tuple[
    tuple[CastlingRights, CastlingRights, int],
    tuple[CastlingRights, CastlingRights, int],
] = (
    (CastlingRights.WHITE_KINGSIDE, CastlingRights.WHITE_QUEENSIDE, 0),
    (CastlingRights.BLACK_KINGSIDE, CastlingRights.BLACK_QUEENSIDE, 56),
)


# -- Precomputed lookup tables ---------------------------------------------


def _build_targets(
    offsets: tuple[tuple[int, int], ...],
) -> tuple[tuple[Square, ...], ...]:
    targets: list[tuple[Square, ...]] = []
    for sq in range(64):
        file_idx = sq & 7
        rank_idx = sq >> 3
        moves: list[Square] = []
        for df, dr in offsets:
            af = file_idx + df
            ar = rank_idx + dr
            if 0 <= af < 8 and 0 <= ar < 8:
                moves.append(make_square(af, ar))
        targets.append(tuple(moves))
    return tuple(targets)


def _build_attack_masks(targets: tuple[tuple[Square, ...], ...]) -> tuple[int, ...]:
    masks: list[int] = [0] * 64
    for sq in range(64):
        mask = 0
        for to_sq in targets[sq]:
            mask |= 1 << to_sq
        masks[sq] = mask
    return tuple(masks)


def _build_rays(
    directions: tuple[tuple[int, int], ...],
) -> tuple[tuple[tuple[Square, ...], ...], ...]:
    rays_per_square: list[tuple[tuple[Square, ...], ...]] = []
    for sq in range(64):
        file_idx = sq & 7
        rank_idx = sq >> 3
        square_rays: list[tuple[Square, ...]] = []
        for df, dr in directions:
            af = file_idx + df
            ar = rank_idx + dr
            ray: list[Square] = []
            while 0 <= af < 8 and 0 <= ar < 8:
                ray.append(make_square(af, ar))
                af += df
                ar += dr
            square_rays.append(tuple(ray))
        rays_per_square.append(tuple(square_rays))
    return tuple(rays_per_square)


_KNIGHT_TARGETS = _build_targets(KNIGHT_OFFSETS)
_KING_TARGETS = _build_targets(KING_OFFSETS)
_KNIGHT_ATTACK_MASKS = _build_attack_masks(_KNIGHT_TARGETS)
_KING_ATTACK_MASKS = _build_attack_masks(_KING_TARGETS)

# [color][sq] -> squares a pawn of *color* on *sq* captures onto.
_PAWN_CAPTURE_TARGETS = (
    _build_targets(((-1, 1), (1, 1))),
    _build_targets(((-1, -1), (1, -1))),
)
# [color][sq] -> squares from which a pawn of *color* would attack *sq*.
# A white pawn attacks sq from where a black pawn on sq would capture to.
_PAWN_ATTACKER_MASKS = (
    _build_attack_masks(_PAWN_CAPTURE_TARGETS[1]),
    _build_attack_masks(_PAWN_CAPTURE_TARGETS[0]),
)

_BISHOP_RAYS = _build_rays(BISHOP_DIRS)
_ROOK_RAYS = _build_rays(ROOK_DIRS)
_QUEEN_RAYS = _build_rays(QUEEN_DIRS)


class MoveGenerator:
    """Generates moves for a given :class:`Position`.

    Legal filtering plays every pseudo-legal move on a private scratch copy
    and keeps it only if the mover's king is not attacked afterwards.  That
    single simulation covers checks, pins and discovered checks; the
    caller's position is never touched.
    """

    __slots__ = ("_pos", "_board")

    def __init__(self, position: Position) -> None:
        self._pos = position
        self._board = position.board

    # -- Public API ---------------------------------------------------------

    def generate_legal_moves(self) -> list[Move]:
        """All strictly legal moves for the side to move.

        Raises :class:`~chessterm.errors.NoKing` when the side to move has
        no king; an empty list means checkmate or stalemate.
        """
        moving_color = self._pos.side_to_move
        self._board.king_square(moving_color)

        scratch_pos = self._pos.copy()
        scratch = MoveGenerator(scratch_pos)
        legal: list[Move] = []
        append_legal = legal.append

        for move in self.generate_pseudo_legal_moves():
            scratch_pos.make_move(move)
            if not scratch.is_in_check(moving_color):
                append_legal(move)
            scratch_pos.unmake_move(move)
        return legal

    def generate_pseudo_legal_moves(self) -> list[Move]:
        """All pseudo-legal moves (may leave own king in check)."""
        moves: list[Move] = []
        color = self._pos.side_to_move
        board = self._board

        pawns = board.pieces_bitboard(color, PieceType.PAWN)
        while pawns:
            lsb = pawns & -pawns
            self._gen_pawn(lsb.bit_length() - 1, color, moves)
            pawns ^= lsb

        knights = board.pieces_bitboard(color, PieceType.KNIGHT)
        while knights:
            lsb = knights & -knights
            self._gen_steps(lsb.bit_length() - 1, color, _KNIGHT_TARGETS, moves)
            knights ^= lsb

        for piece_type, rays in (
            (PieceType.BISHOP, _BISHOP_RAYS),
            (PieceType.ROOK, _ROOK_RAYS),
            (PieceType.QUEEN, _QUEEN_RAYS),
        ):
            sliders = board.pieces_bitboard(color, piece_type)
            while sliders:
                lsb = sliders & -sliders
                sq = lsb.bit_length() - 1
                self._gen_sliding(sq, color, rays[sq], moves)
                sliders ^= lsb

        kings = board.pieces_bitboard(color, PieceType.KING)
        while kings:
            lsb = kings & -kings
            sq = lsb.bit_length() - 1
            self._gen_steps(sq, color, _KING_TARGETS, moves)
            self._gen_castling(sq, color, moves)
            kings ^= lsb

        return moves

    # -- Attack detection (public) -----------------------------------------

    def is_in_check(self, color: Color) -> bool:
        """Is *color*'s king attacked by the opponent?"""
        king_sq = self._board.king_square(color)
        return self.is_square_attacked(king_sq, _COLOR_OPPOSITE[int(color)])

    def is_square_attacked(self, sq: Square, by_color: Color) -> bool:
        """Is *sq* attacked by any piece of *by_color*?

        Pawns count only through their capture diagonals, never their pushes.
        """
        board = self._board
        by_idx = int(by_color)

        if (
            board.pieces_bitboard(by_color, PieceType.PAWN)
            & _PAWN_ATTACKER_MASKS[by_idx][sq]
        ):
            return True

        if board.pieces_bitboard(by_color, PieceType.KNIGHT) & _KNIGHT_ATTACK_MASKS[sq]:
            return True

        if board.pieces_bitboard(by_color, PieceType.KING) & _KING_ATTACK_MASKS[sq]:
            return True

        queens = board.pieces_bitboard(by_color, PieceType.QUEEN)
        if queens or board.pieces_bitboard(by_color, PieceType.BISHOP):
            if self._ray_hits(_BISHOP_RAYS[sq], by_color, PieceType.BISHOP):
                return True

        if queens or board.pieces_bitboard(by_color, PieceType.ROOK):
            if self._ray_hits(_ROOK_RAYS[sq], by_color, PieceType.ROOK):
                return True

        return False

    # -- Piece-specific generators (private) -------------------------------

    def _ray_hits(
        self,
        rays: tuple[tuple[Square, ...], ...],
        by_color: Color,
        slider: PieceType,
    ) -> bool:
        board = self._board
        for ray in rays:
            for to_sq in ray:
                piece = board[to_sq]
                if piece is None:
                    continue
                if piece.color == by_color and piece.piece_type in (
                    slider,
                    PieceType.QUEEN,
                ):
                    return True
                break
        return False

    def _gen_pawn(self, sq: Square, color: Color, moves: list[Move]) -> None:
        board = self._board
        push, start_rank, promo_rank = _PAWN_GEOMETRY[int(color)]
        rank_idx = sq >> 3
        promotes = rank_idx == promo_rank

        one_step = sq + push
        if 0 <= one_step < 64 and board.is_empty(one_step):
            if promotes:
                for pt in PROMOTION_TYPES:
                    moves.append(Move(sq, one_step, MoveFlag.NORMAL, pt))
            else:
                moves.append(Move(sq, one_step))
                if rank_idx == start_rank:
                    two_step = one_step + push
                    if board.is_empty(two_step):
                        moves.append(Move(sq, two_step, MoveFlag.DOUBLE_PUSH))

        en_passant = self._pos.en_passant
        for cap_sq in _PAWN_CAPTURE_TARGETS[int(color)][sq]:
            target = board[cap_sq]
            if target is not None:
                if target.color == color:
                    continue
                if promotes:
                    for pt in PROMOTION_TYPES:
                        moves.append(Move(sq, cap_sq, MoveFlag.NORMAL, pt))
                else:
                    moves.append(Move(sq, cap_sq))
            elif cap_sq == en_passant:
                moves.append(Move(sq, cap_sq, MoveFlag.EN_PASSANT))

    def _gen_steps(
        self,
        sq: Square,
        color: Color,
        targets: tuple[tuple[Square, ...], ...],
        moves: list[Move],
    ) -> None:
        board = self._board
        for to_sq in targets[sq]:
            target = board[to_sq]
            if target is None or target.color != color:
                moves.append(Move(sq, to_sq))

    def _gen_sliding(
        self,
        sq: Square,
        color: Color,
        rays: tuple[tuple[Square, ...], ...],
        moves: list[Move],
    ) -> None:
        board = self._board
        for ray in rays:
            for to_sq in ray:
                target = board[to_sq]
                if target is None:
                    moves.append(Move(sq, to_sq))
                    continue
                if target.color != color:
                    moves.append(Move(sq, to_sq))
                break

    def _gen_castling(self, king_sq: Square, color: Color, moves: list[Move]) -> None:
        kingside, queenside, offset = _CASTLING_GEOMETRY[int(color)]
        castling = self._pos.castling
        if not castling & (kingside | queenside) or king_sq != offset + 4:
            return
        if self.is_in_check(color):
            return

        opponent = _COLOR_OPPOSITE[int(color)]

        if castling & kingside and self._has_own_rook(offset + 7, color):
            f_sq = offset + 5
            g_sq = offset + 6
            if (
                self._board.is_empty(f_sq)
                and self._board.is_empty(g_sq)
                and not self.is_square_attacked(f_sq, opponent)
                and not self.is_square_attacked(g_sq, opponent)
            ):
                moves.append(Move(king_sq, g_sq, MoveFlag.CASTLE_KINGSIDE))

        if castling & queenside and self._has_own_rook(offset, color):
            b_sq = offset + 1
            c_sq = offset + 2
            d_sq = offset + 3
            if (
                self._board.is_empty(b_sq)
                and self._board.is_empty(c_sq)
                and self._board.is_empty(d_sq)
                and not self.is_square_attacked(c_sq, opponent)
                and not self.is_square_attacked(d_sq, opponent)
            ):
                moves.append(Move(king_sq, c_sq, MoveFlag.CASTLE_QUEENSIDE))

    def _has_own_rook(self, sq: Square, color: Color) -> bool:
        piece = self._board[sq]
        return (
            piece is not None
            and piece.color == color
            and piece.piece_type == PieceType.ROOK
        )


def legal_moves(position: Position) -> frozenset[Move]:
    """Set of legal moves for the side to move in *position*."""
    return frozenset(MoveGenerator(position).generate_legal_moves())


def attacked(position: Position, sq: Square, by_color: Color) -> bool:
    """Whether *sq* is attacked by *by_color* in *position*."""
    return MoveGenerator(position).is_square_attacked(sq, by_color)
