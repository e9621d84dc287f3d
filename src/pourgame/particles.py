"""Particle effects for the pour stream and round results."""

from __future__ import annotations

import random
import pygame

from .utils import Color


class Particle(pygame.sprite.Sprite):
    """Droplet sprite with gravity and fade-out lifetime."""

    def __init__(
        self,
        position: tuple[float, float],
        color: Color,
        velocity: tuple[float, float],
        life: int,
        size: int,
        gravity: float = 0.0,
    ) -> None:
        super().__init__()
        self.position = [float(position[0]), float(position[1])]
        self.velocity = [velocity[0], velocity[1]]
        self.gravity = gravity
        self.life = life
        self.max_life = life
        self.color = color
        self.size = size
        self.image = pygame.Surface((size * 2, size * 2), pygame.SRCALPHA)
        self.rect = self.image.get_rect(center=(int(position[0]), int(position[1])))

    def update(self) -> None:
        """Advance particle simulation one frame."""
        self.velocity[1] += self.gravity
        self.position[0] += self.velocity[0]
        self.position[1] += self.velocity[1]
        self.velocity[0] *= 0.98
        self.life -= 1

        alpha = max(0, int(255 * (self.life / max(1, self.max_life))))
        self.image.fill((0, 0, 0, 0))
        pygame.draw.circle(self.image, (*self.color, alpha), (self.size, self.size), self.size)
        self.rect.center = (int(self.position[0]), int(self.position[1]))

        if self.life <= 0:
            self.kill()


class ParticleSystem:
    """Owns particle groups and helper emitters."""

    def __init__(self) -> None:
        self.particles = pygame.sprite.Group()

    def emit_splash(self, position: tuple[float, float], color: Color) -> None:
        """Small droplets where the stream hits the water surface."""
        if random.random() > 0.5:
            return
        for _ in range(random.randint(1, 3)):
            velocity = (random.uniform(-1.6, 1.6), random.uniform(-2.8, -1.0))
            self.particles.add(
                Particle(
                    position=(position[0] + random.randint(-4, 4), position[1]),
                    color=color,
                    velocity=velocity,
                    life=random.randint(12, 22),
                    size=random.randint(1, 3),
                    gravity=0.22,
                )
            )

    def emit_celebration(self, position: tuple[float, float], colors: list[Color]) -> None:
        """Burst of confetti after a successful pour."""
        for _ in range(60):
            velocity = (random.uniform(-4.5, 4.5), random.uniform(-6.0, -1.5))
            self.particles.add(
                Particle(
                    position=position,
                    color=random.choice(colors),
                    velocity=velocity,
                    life=random.randint(30, 60),
                    size=random.randint(2, 4),
                    gravity=0.15,
                )
            )

    def clear(self) -> None:
        self.particles.empty()

    def update(self) -> None:
        """Update all particles."""
        self.particles.update()

    def draw(self, surface: pygame.Surface) -> None:
        """Draw particles on top of the scene."""
        self.particles.draw(surface)
