"""Genetic-algorithm timetable generation."""

from __future__ import annotations

import logging
import random
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from itertools import permutations
from typing import Any
from uuid import UUID

logger = logging.getLogger(__name__)

NIL_UUID = UUID(int=0)
_CONSECUTIVE_GAP = timedelta(minutes=15)
_LUNCH_HOURS = (12, 13)
_MAX_SCORE = 2000.0
_HARD_PENALTY = 100.0
_SOFT_PENALTY = 10.0
_TOURNAMENT_SIZE = 5


def _seconds(t: time) -> int:
    return t.hour * 3600 + t.minute * 60 + t.second


def _add(t: time, delta: timedelta) -> time:
    return (datetime.combine(date.min, t) + delta).time()


@dataclass(frozen=True)
class Gene:
    """A single class meeting in a timetable."""

    class_id: UUID
    subject_id: UUID
    teacher_id: UUID
    room_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    duration: timedelta


@dataclass
class Chromosome:
    """A complete candidate timetable and its fitness."""

    genes: list[Gene] = field(default_factory=list)
    fitness: float = 0.0


_CONFIG_DEFAULTS = {
    "population_size": 100,
    "max_generations": 500,
    "mutation_rate": 0.05,
    "crossover_rate": 0.8,
    "school_day_start": 8,
    "school_day_end": 17,
    "max_consecutive": 3,
}


@dataclass
class Config:
    """Tuning parameters; zero values fall back to the defaults."""

    population_size: int = 100
    max_generations: int = 500
    mutation_rate: float = 0.05
    crossover_rate: float = 0.8
    school_day_start: int = 8
    school_day_end: int = 17
    max_consecutive: int = 3
    break_required_after: int = 0

    def __post_init__(self) -> None:
        for name, default in _CONFIG_DEFAULTS.items():
            if not getattr(self, name):
                setattr(self, name, default)


@dataclass
class ClassInfo:
    class_id: UUID
    course_id: UUID = NIL_UUID
    enrollment_count: int = 0
    class_name: str = ""


@dataclass
class SubjectInfo:
    subject_id: UUID
    subject_name: str = ""
    lab_period_required: bool = False
    double_period_required: bool = False


@dataclass
class RoomInfo:
    room_id: UUID
    capacity: int = 0
    room_name: str = ""


@dataclass
class TeacherAvailability:
    teacher_id: UUID
    day_of_week: int
    start_time: time
    end_time: time


@dataclass
class InputData:
    """Everything the scheduler needs about one school term."""

    classes: list[ClassInfo] = field(default_factory=list)
    subjects: list[SubjectInfo] = field(default_factory=list)
    teachers: list[Any] = field(default_factory=list)
    rooms: list[RoomInfo] = field(default_factory=list)
    teacher_subs: dict[UUID, list[UUID]] = field(default_factory=dict)
    course_subs: dict[UUID, list[UUID]] = field(default_factory=dict)
    availability: dict[UUID, list[TeacherAvailability]] = field(default_factory=dict)


class Scheduler:
    """Builds timetables with a genetic algorithm."""

    def __init__(self, queries: Any = None, config: Config | None = None,
                 rng: random.Random | None = None) -> None:
        self.queries = queries
        self.config = config if config is not None else Config()
        self.rng = rng if rng is not None else random.Random()

    def generate(self, school_id: UUID, academic_year: str, semester: str) -> Chromosome:
        """Fetch the school's data and return the best timetable found."""
        data = self.fetch_input_data(school_id, academic_year, semester)
        return self.evolve(data)

    def evolve(self, data: InputData) -> Chromosome:
        """Run the genetic algorithm over already-loaded data."""
        if not data.classes:
            raise ValueError("no classes found for scheduling")
        if not data.rooms:
            raise ValueError("no rooms found for scheduling")

        size = self.config.population_size
        population = [self.random_chromosome(data) for _ in range(size)]

        for _ in range(self.config.max_generations):
            for chromosome in population:
                chromosome.fitness = self.calculate_fitness(chromosome, data)
            population.sort(key=lambda c: c.fitness, reverse=True)

            best = population[0]
            if best.fitness >= 1.0:
                break

            next_population = [best]
            while len(next_population) < size:
                parent1 = self.select_parent(population)
                parent2 = self.select_parent(population)
                child1, child2 = self.crossover(parent1, parent2)
                self.mutate(child1, data)
                self.mutate(child2, data)
                next_population.append(child1)
                if len(next_population) < size:
                    next_population.append(child2)
            population = next_population

        return population[0]

    def fetch_input_data(self, school_id: UUID, academic_year: str, semester: str) -> InputData:
        """Load classes, subjects, teachers, rooms and availability."""
        q = self.queries
        classes = list(q.get_classes_for_scheduling(
            school_id=school_id,
            academic_year=academic_year,
            semester=semester or None,
        ))
        subjects = list(q.get_subjects_by_school(school_id))
        teachers = list(q.get_teachers_by_school(school_id))
        rooms = list(q.get_rooms_by_school(school_id))

        teacher_subs: dict[UUID, list[UUID]] = defaultdict(list)
        for row in q.list_teacher_subjects_by_school(school_id):
            teacher_subs[row.teacher_id].append(row.subject_id)

        course_subs: dict[UUID, list[UUID]] = {}
        for cls in classes:
            try:
                subs = q.get_course_subjects(cls.course_id)
            except Exception as exc:  # a course without subjects is simply skipped
                logger.debug("no subjects for course %s: %s", cls.course_id, exc)
                continue
            course_subs[cls.course_id] = [sub.subject_id for sub in subs]

        availability: dict[UUID, list[TeacherAvailability]] = defaultdict(list)
        for slot in q.get_teacher_availabilities(None):
            availability[slot.teacher_id].append(slot)

        return InputData(
            classes=classes,
            subjects=subjects,
            teachers=teachers,
            rooms=rooms,
            teacher_subs=dict(teacher_subs),
            course_subs=course_subs,
            availability=dict(availability),
        )

    def _random_slot(self, duration: timedelta) -> tuple[int, time, time]:
        cfg = self.config
        day = self.rng.randrange(5) + 1
        max_hour = cfg.school_day_end - int(duration.total_seconds() // 3600)
        if max_hour <= cfg.school_day_start:
            max_hour = cfg.school_day_start + 1
        hour = self.rng.randrange(max_hour - cfg.school_day_start) + cfg.school_day_start
        start = time(hour)
        return day, start, _add(start, duration)

    def random_chromosome(self, data: InputData) -> Chromosome:
        """Build a random timetable covering every class's course subjects."""
        subjects: dict[UUID, SubjectInfo] = {}
        for subject in data.subjects:
            subjects.setdefault(subject.subject_id, subject)

        genes = []
        for cls in data.classes:
            for subject_id in data.course_subs.get(cls.course_id, []):
                subject = subjects.get(subject_id, SubjectInfo(subject_id=NIL_UUID))
                qualified = [
                    teacher_id
                    for teacher_id, taught in data.teacher_subs.items()
                    if subject_id in taught
                ]
                if not qualified:
                    continue
                teacher_id = self.rng.choice(qualified)
                room_id = self.rng.choice(data.rooms).room_id

                if subject.lab_period_required or subject.double_period_required:
                    duration = timedelta(hours=2)
                else:
                    duration = timedelta(hours=1)

                day, start, end = self._random_slot(duration)
                genes.append(Gene(
                    class_id=cls.class_id,
                    subject_id=subject_id,
                    teacher_id=teacher_id,
                    room_id=room_id,
                    day_of_week=day,
                    start_time=start,
                    end_time=end,
                    duration=duration,
                ))
        return Chromosome(genes=genes)

    def calculate_fitness(self, chromosome: Chromosome, data: InputData) -> float:
        """Score a timetable between 0 and 1; 1 means no conflicts at all."""
        hard = 0
        soft = 0

        rooms: dict[UUID, RoomInfo] = {}
        for room in data.rooms:
            rooms.setdefault(room.room_id, room)
        classes: dict[UUID, ClassInfo] = {}
        for cls in data.classes:
            classes.setdefault(cls.class_id, cls)

        schedules: dict[UUID, dict[int, list[Gene]]] = defaultdict(lambda: defaultdict(list))

        for gene in chromosome.genes:
            capacity = rooms[gene.room_id].capacity if gene.room_id in rooms else 0
            enrolled = classes[gene.class_id].enrollment_count if gene.class_id in classes else 0
            if enrolled > capacity:
                hard += 1

            slots = data.availability.get(gene.teacher_id, [])
            if slots and not any(
                slot.day_of_week == gene.day_of_week
                and gene.start_time >= time(slot.start_time.hour, slot.start_time.minute)
                and gene.end_time <= time(slot.end_time.hour, slot.end_time.minute)
                for slot in slots
            ):
                hard += 1

            schedules[gene.teacher_id][gene.day_of_week].append(gene)

        for g1, g2 in permutations(chromosome.genes, 2):
            if g1.day_of_week != g2.day_of_week:
                continue
            if g1.start_time < g2.end_time and g2.start_time < g1.end_time:
                hard += (g1.teacher_id == g2.teacher_id) + (g1.room_id == g2.room_id) \
                    + (g1.class_id == g2.class_id)

        for days in schedules.values():
            for day_genes in days.values():
                soft += self._soft_conflicts(sorted(day_genes, key=lambda g: g.start_time))

        score = _MAX_SCORE - hard * _HARD_PENALTY - soft * _SOFT_PENALTY
        return max(score, 0.0) / _MAX_SCORE

    def _soft_conflicts(self, day_genes: list[Gene]) -> int:
        conflicts = 0
        consecutive = 0
        previous: Gene | None = None
        for gene in day_genes:
            if previous is not None:
                gap = _seconds(gene.start_time) - _seconds(previous.end_time)
                consecutive = consecutive + 1 if gap <= _CONSECUTIVE_GAP.total_seconds() else 0
            if consecutive >= self.config.max_consecutive:
                conflicts += 1
            previous = gene

        def busy(hour: int) -> bool:
            start = time(hour)
            end = time(hour + 1)
            return any(g.start_time < end and start < g.end_time for g in day_genes)

        if all(busy(hour) for hour in _LUNCH_HOURS):
            conflicts += 1
        return conflicts

    def select_parent(self, population: list[Chromosome]) -> Chromosome:
        """Tournament selection: the fittest of a few random picks."""
        best = self.rng.choice(population)
        for _ in range(_TOURNAMENT_SIZE - 1):
            competitor = self.rng.choice(population)
            if competitor.fitness > best.fitness:
                best = competitor
        return best

    def crossover(self, parent1: Chromosome, parent2: Chromosome) -> tuple[Chromosome, Chromosome]:
        """Single-point crossover; returns fresh children."""
        if self.rng.random() > self.config.crossover_rate or not parent1.genes:
            return (Chromosome(list(parent1.genes), parent1.fitness),
                    Chromosome(list(parent2.genes), parent2.fitness))
        point = self.rng.randrange(len(parent1.genes))
        child1 = parent1.genes[:point] + parent2.genes[point:]
        child2 = parent2.genes[:point] + parent1.genes[point:]
        return Chromosome(child1), Chromosome(child2)

    def mutate(self, chromosome: Chromosome, data: InputData) -> None:
        """Randomly move genes in time or to another room, in place."""
        chromosome.genes = [self._mutate_gene(gene, data) for gene in chromosome.genes]

    def _mutate_gene(self, gene: Gene, data: InputData) -> Gene:
        if self.rng.random() >= self.config.mutation_rate:
            return gene
        if self.rng.random() < 0.5:
            day, start, end = self._random_slot(gene.duration)
            return replace(gene, day_of_week=day, start_time=start, end_time=end)
        return replace(gene, room_id=self.rng.choice(data.rooms).room_id)