"""Maps provider speaker labels onto a roster of participant names."""

import re

from .models import Utterance

_GENERIC_LABEL = re.compile(r"^speaker[\s_-]*\d*$", re.IGNORECASE)


def is_generic_speaker(label: str | None) -> bool:
    """True for empty, 'unknown' and 'Speaker N' style labels."""
    if label is None:
        return True
    stripped = label.strip()
    return not stripped or stripped.lower() == "unknown" or bool(_GENERIC_LABEL.match(stripped))


class SpeakerReconciler:
    """
    Replaces placeholder speaker labels with roster names.

    With a single roster name every utterance is attributed to it. With
    several, a label is kept if it is a roster name. A non-generic label is
    mapped to a roster name it matches case-insensitively as a substring.
    Generic labels get the least-used roster name so far. The least-used
    rule balances attribution; it does not identify voices, so meetings with
    more than two speakers will see misattributed utterances.
    """

    def __init__(self, roster: list[str]):
        self._roster = [name.strip() for name in roster if name and name.strip()]
        self._usage = {name: 0 for name in self._roster}

    def reconcile(self, utterances: list[Utterance]) -> list[Utterance]:
        if not self._roster:
            return list(utterances)
        return [self._reconcile_one(u) for u in utterances]

    def _reconcile_one(self, utterance: Utterance) -> Utterance:
        name = self.resolve(utterance.speaker)
        if name == utterance.speaker:
            return utterance
        return utterance.model_copy(update={"speaker": name})

    def resolve(self, label: str | None) -> str | None:
        """Returns the roster name for a label and counts its use."""
        if len(self._roster) == 1:
            name = self._roster[0]
        else:
            name = self._match(label)
            if name is None:
                if not is_generic_speaker(label):
                    return label
                name = self._least_used()
        self._usage[name] += 1
        return name

    def _match(self, label: str | None) -> str | None:
        if not label:
            return None
        if label in self._usage:
            return label
        if is_generic_speaker(label):
            return None
        lowered = label.strip().lower()
        if not lowered:
            return None
        for name in self._roster:
            candidate = name.lower()
            if lowered in candidate or candidate in lowered:
                return name
        return None

    def _least_used(self) -> str:
        return min(self._roster, key=lambda name: self._usage[name])
